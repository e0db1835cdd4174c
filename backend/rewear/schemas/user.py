from marshmallow import Schema, fields, validate, pre_load


class RegisterSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=2, max=50))
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.Str(required=True, load_only=True, validate=validate.Length(min=6))

    @pre_load
    def _normalize(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if isinstance(data.get("email"), str):
            data["email"] = data["email"].strip().lower()
        if isinstance(data.get("name"), str):
            data["name"] = data["name"].strip()
        return data


class LoginSchema(Schema):
    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)


class ProfileUpdateSchema(Schema):
    name = fields.Str(validate=validate.Length(min=2, max=50))
    bio = fields.Str(allow_none=True, validate=validate.Length(max=200))
    location = fields.Str(allow_none=True, validate=validate.Length(max=100))


class PointsAdjustmentSchema(Schema):
    user_id = fields.Int(data_key="userId", required=True, strict=True)
    points = fields.Int(required=True, strict=True, validate=validate.Range(min=1, max=100000))
    reason = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=500))


class PointsHistoryQuerySchema(Schema):
    limit = fields.Int(load_default=50, validate=validate.Range(min=1, max=200))
    offset = fields.Int(load_default=0, validate=validate.Range(min=0))
