"""
接口表单与验证器
API 只接收 JSON，请求体先转成 MultiDict 再交给 WTForms 校验
"""
from flask import request
from flask_wtf import FlaskForm
from wtforms import StringField
from werkzeug.datastructures import MultiDict
from wtforms.validators import ValidationError as FieldError
from app.exceptions import ValidationError


class ApiForm(FlaskForm):
    """JSON 接口表单基类（无会话，不做 CSRF 校验）"""
    class Meta:
        csrf = False


def validate_whole_number(form, field):
    """拒绝小数与布尔值：数量与 ID 只支持整数"""
    if not field.raw_data:
        return
    raw = field.raw_data[0]
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise FieldError("必须为整数")

def validate_non_zero(form, field):
    """验证非零"""
    if field.data is not None and field.data == 0:
        raise FieldError('数值不能为 0')


def json_body():
    """读取 JSON 请求体，必须是对象"""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object')
    return body


def validate_form(form_cls, data):
    """
    用表单类校验一份字典数据
    :return: 通过校验的表单实例
    :raises ValidationError: 携带字段错误
    """
    formdata = MultiDict({k: _text_value(form_cls, k, v) for k, v in data.items()
                          if v is not None and not isinstance(v, (list, dict))})
    form = form_cls(formdata=formdata)
    if not form.validate():
        raise ValidationError('Invalid data', payload={'errors': form.errors})
    return form


def _text_value(form_cls, name, value):
    """文本字段接受 JSON 数字（如 reference_id: 42），统一转成字符串；布尔值不接受"""
    field_class = getattr(getattr(form_cls, name, None), 'field_class', None)
    if field_class is None or not issubclass(field_class, StringField) or isinstance(value, str):
        return value
    if isinstance(value, bool):
        raise ValidationError('Invalid data', payload={'errors': {name: ['必须为文本']}})
    return str(value)
