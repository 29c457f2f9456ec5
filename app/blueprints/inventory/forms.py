from wtforms import IntegerField, StringField, DateField
from wtforms.validators import DataRequired, InputRequired, NumberRange, Length, Optional, AnyOf, ValidationError
from app.models.stock import LedgerEntry
from app.utils.validators import ApiForm, validate_whole_number, validate_non_zero

_ID = [DataRequired(), validate_whole_number, NumberRange(min=1)]
_OPTIONAL_ID = [Optional(), validate_whole_number, NumberRange(min=1)]
_QUANTITY = [InputRequired(), validate_whole_number, NumberRange(min=1, message="数量必须大于 0")]


class StockMovementForm(ApiForm):
    """入库 / 出库 / 退货"""
    sku_id = IntegerField('SKU', validators=_ID)
    warehouse_id = IntegerField('仓库', validators=_ID)
    bin_location_id = IntegerField('货位', validators=_OPTIONAL_ID)
    quantity = IntegerField('数量', validators=_QUANTITY)
    reference_type = StringField('关联单据类型', validators=[Optional(), Length(max=32)])
    reference_id = StringField('关联单据号', validators=[Optional(), Length(max=64)])
    notes = StringField('备注', validators=[Optional(), Length(max=255)])


class StockAdjustmentForm(ApiForm):
    """盘点调整（数量带符号）"""
    sku_id = IntegerField('SKU', validators=_ID)
    warehouse_id = IntegerField('仓库', validators=_ID)
    bin_location_id = IntegerField('货位', validators=_OPTIONAL_ID)
    quantity = IntegerField('调整数量', validators=[InputRequired(), validate_whole_number, validate_non_zero])
    notes = StringField('调整原因', validators=[Optional(), Length(max=255)])


class StockTransferForm(ApiForm):
    """调拨"""
    sku_id = IntegerField('SKU', validators=_ID)
    from_warehouse_id = IntegerField('源仓库', validators=_ID)
    to_warehouse_id = IntegerField('目标仓库', validators=_ID)
    from_bin_location_id = IntegerField('源货位', validators=_OPTIONAL_ID)
    to_bin_location_id = IntegerField('目标货位', validators=_OPTIONAL_ID)
    quantity = IntegerField('数量', validators=_QUANTITY)
    notes = StringField('备注', validators=[Optional(), Length(max=255)])

    def validate_to_warehouse_id(self, field):
        if field.data == self.from_warehouse_id.data and \
                self.to_bin_location_id.data == self.from_bin_location_id.data:
            raise ValidationError('源位置与目标位置相同')


class StockLockForm(ApiForm):
    """锁定 / 解锁"""
    sku_id = IntegerField('SKU', validators=_ID)
    warehouse_id = IntegerField('仓库', validators=_ID)
    quantity = IntegerField('数量', validators=_QUANTITY)
    reference_type = StringField('关联单据类型', validators=[Optional(), Length(max=32)])
    reference_id = StringField('关联单据号', validators=[Optional(), Length(max=64)])


class LedgerFilterForm(ApiForm):
    """流水查询条件 (GET 参数)"""
    sku_id = IntegerField('SKU', validators=_OPTIONAL_ID)
    warehouse_id = IntegerField('仓库', validators=_OPTIONAL_ID)
    type = StringField('类型', validators=[Optional(), AnyOf(LedgerEntry.TYPES)])
    start_date = DateField('开始日期', format='%Y-%m-%d', validators=[Optional()])
    end_date = DateField('结束日期', format='%Y-%m-%d', validators=[Optional()])
