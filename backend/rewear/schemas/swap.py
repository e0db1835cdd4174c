from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from ..models.enums import SwapStatus, SwapType


class SwapCreateSchema(Schema):
    item_id = fields.Int(data_key="itemId", required=True, strict=True)
    swap_type = fields.Str(data_key="swapType", required=True, validate=validate.OneOf([t.value for t in SwapType]))
    offered_item_id = fields.Int(data_key="offeredItemId", load_default=None, allow_none=True, strict=True)
    offered_points = fields.Int(
        data_key="offeredPoints", load_default=None, allow_none=True, strict=True, validate=validate.Range(min=1)
    )
    message = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=500))

    @validates_schema
    def _check_offer(self, data, **kwargs):
        if data.get("swap_type") == SwapType.DIRECT.value and data.get("offered_item_id") is None:
            raise ValidationError("Offered item is required for direct swaps", "offeredItemId")
        if data.get("swap_type") == SwapType.POINTS.value and data.get("offered_points") is None:
            raise ValidationError("Offered points are required for points swaps", "offeredPoints")


class SwapRespondSchema(Schema):
    response_message = fields.Str(data_key="responseMessage", load_default=None, allow_none=True, validate=validate.Length(max=500))


class SwapCancelSchema(Schema):
    reason = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=200))


class SwapListQuerySchema(Schema):
    status = fields.Str(load_default=None, validate=validate.OneOf([s.value for s in SwapStatus]))
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=10, validate=validate.Range(min=1, max=100))
