from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, InputRequired, NumberRange, Length, Optional, AnyOf
from app.models.trade import SalesOrder
from app.utils.validators import ApiForm, validate_whole_number


class SalesOrderCreateForm(ApiForm):
    """创建订单表头 (明细行单独校验)"""
    customer_id = IntegerField('客户', validators=[DataRequired(), validate_whole_number, NumberRange(min=1)])
    warehouse_id = IntegerField('发货仓库', validators=[DataRequired(), validate_whole_number, NumberRange(min=1)])
    currency = StringField('币种', validators=[Optional(), Length(min=3, max=3)])
    notes = StringField('订单备注', validators=[Optional(), Length(max=255)])


class SalesOrderItemForm(ApiForm):
    """订单明细行"""
    sku_id = IntegerField('SKU', validators=[DataRequired(), validate_whole_number, NumberRange(min=1)])
    quantity = IntegerField('数量', validators=[
        InputRequired(), validate_whole_number, NumberRange(min=1, message="数量必须大于 0")
    ])


class SalesOrderUpdateForm(ApiForm):
    """修改表头"""
    currency = StringField('币种', validators=[Optional(), Length(min=3, max=3)])
    notes = StringField('订单备注', validators=[Optional(), Length(max=255)])


class FulfillmentStageForm(ApiForm):
    """仓库作业进度"""
    status = StringField('状态', validators=[
        DataRequired(), AnyOf([SalesOrder.STATUS_PICKING, SalesOrder.STATUS_PACKED])
    ])
