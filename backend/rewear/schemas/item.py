from marshmallow import Schema, fields, validate, pre_load

from ..models.enums import ITEM_CATEGORIES, ITEM_CONDITIONS, ITEM_SIZES, ItemStatus


def _strip_strings(data):
    if not isinstance(data, dict):
        return data
    return {k: (v.strip() if isinstance(v, str) else v) for k, v in data.items()}


class ItemCreateSchema(Schema):
    title = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    description = fields.Str(required=True, validate=validate.Length(min=1, max=1000))
    category = fields.Str(required=True, validate=validate.OneOf(ITEM_CATEGORIES))
    size = fields.Str(required=True, validate=validate.OneOf(ITEM_SIZES))
    condition = fields.Str(required=True, validate=validate.OneOf(ITEM_CONDITIONS))
    points = fields.Int(required=True, strict=True, validate=validate.Range(min=1, max=1000))
    image_url = fields.Str(data_key="imageUrl", load_default=None, validate=validate.Length(max=512))
    brand = fields.Str(load_default=None, validate=validate.Length(max=50))
    color = fields.Str(load_default=None, validate=validate.Length(max=30))
    location = fields.Str(load_default=None, validate=validate.Length(max=100))

    @pre_load
    def _normalize(self, data, **kwargs):
        return _strip_strings(data)


class ItemUpdateSchema(Schema):
    """Owner edits; only the fields sent are changed."""
    title = fields.Str(validate=validate.Length(min=1, max=100))
    description = fields.Str(validate=validate.Length(min=1, max=1000))
    category = fields.Str(validate=validate.OneOf(ITEM_CATEGORIES))
    size = fields.Str(validate=validate.OneOf(ITEM_SIZES))
    condition = fields.Str(validate=validate.OneOf(ITEM_CONDITIONS))
    points = fields.Int(strict=True, validate=validate.Range(min=1, max=1000))
    image_url = fields.Str(data_key="imageUrl", allow_none=True, validate=validate.Length(max=512))
    brand = fields.Str(allow_none=True, validate=validate.Length(max=50))
    color = fields.Str(allow_none=True, validate=validate.Length(max=30))
    location = fields.Str(allow_none=True, validate=validate.Length(max=100))

    @pre_load
    def _normalize(self, data, **kwargs):
        return _strip_strings(data)


class ItemListQuerySchema(Schema):
    category = fields.Str(load_default=None, validate=validate.OneOf(ITEM_CATEGORIES))
    limit = fields.Int(load_default=20, validate=validate.Range(min=1, max=100))
    offset = fields.Int(load_default=0, validate=validate.Range(min=0))


class UserItemsQuerySchema(Schema):
    # "all" lifts the status filter
    status = fields.Str(
        load_default=ItemStatus.AVAILABLE.value,
        validate=validate.OneOf([s.value for s in ItemStatus] + ["all"]),
    )
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=12, validate=validate.Range(min=1, max=100))


class AdminItemQuerySchema(Schema):
    status = fields.Str(load_default=ItemStatus.PENDING.value, validate=validate.OneOf([s.value for s in ItemStatus]))
    limit = fields.Int(load_default=50, validate=validate.Range(min=1, max=200))


class ItemApproveSchema(Schema):
    admin_notes = fields.Str(data_key="adminNotes", load_default=None, validate=validate.Length(max=500))


class ItemRejectSchema(Schema):
    reason = fields.Str(required=True, validate=validate.Length(min=1, max=200))
