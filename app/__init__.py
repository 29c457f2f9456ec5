import logging
import colorlog
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from config import config
from app.extensions import db, migrate
from app.exceptions import NexusException

# 导入 commands 模块，用于注册 CLI 命令
from app import commands


def create_app(config_name='default'):
    """NEXUS 库存核心应用工厂函数"""
    app = Flask(__name__)
    
    # 1. 加载配置
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    # 2. 初始化扩展
    db.init_app(app)
    migrate.init_app(app, db)

    # 3. 配置日志
    configure_logging(app)

    # 4. 注册蓝图 (Blueprints)
    register_blueprints(app)

    # 5. 注册全局错误处理
    register_error_handlers(app)

    # 6. 注册 CLI 命令
    register_commands(app)

    return app


def register_blueprints(app):
    """注册所有业务模块蓝图"""
    # 库存接口蓝图
    from app.blueprints.inventory import inventory_bp
    app.register_blueprint(inventory_bp, url_prefix='/api/inventory')
    
    # 销售订单接口蓝图
    from app.blueprints.sales import sales_bp
    app.register_blueprint(sales_bp, url_prefix='/api/sales-orders')


def register_error_handlers(app):
    @app.errorhandler(NexusException)
    def handle_nexus_exception(e):
        return jsonify(e.to_dict()), e.code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({'success': False, 'code': e.code, 'error': e.name, 'message': e.description}), e.code

    @app.errorhandler(500)
    def internal_server_error(e):
        app.logger.error(f'未处理异常: {e}')
        return jsonify({'success': False, 'code': 500, 'error': 'InternalServerError',
                        'message': 'Internal server error'}), 500


def register_commands(app):
    """注册 Flask CLI 命令"""
    app.cli.add_command(commands.forge)
    app.cli.add_command(commands.status)
    app.cli.add_command(commands.reconcile)


def configure_logging(app):
    """配置彩色控制台日志，提升开发体验"""
    if app.debug:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s[%(asctime)s] %(levelname)-8s%(reset)s %(blue)s%(message)s",
            datefmt="%H:%M:%S",
            reset=True,
            log_colors={
                'DEBUG':    'cyan',
                'INFO':     'green',
                'WARNING':  'yellow',
                'ERROR':    'red',
                'CRITICAL': 'red,bg_white',
            },
            secondary_log_colors={},
            style='%'
        )
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)
        # app.services.* 等模块日志向上汇入 app.logger
        app.logger.setLevel(logging.INFO)
