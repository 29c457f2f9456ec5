import os
from dotenv import load_dotenv

# 加载 .env 环境变量
load_dotenv()
basedir = os.path.abspath(os.path.dirname(__file__))

class Config:
    """基础配置类"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-string'
    
    # 数据库配置
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_RECORD_QUERIES = True

    # 库存事务：PostgreSQL 行锁等待上限（毫秒），超时返回可重试错误
    INVENTORY_LOCK_TIMEOUT_MS = int(os.environ.get('INVENTORY_LOCK_TIMEOUT_MS', 5000))

    # 销售订单默认币种
    DEFAULT_CURRENCY = os.environ.get('DEFAULT_CURRENCY', 'EUR')

    # API 分页
    API_PAGE_SIZE = int(os.environ.get('API_PAGE_SIZE', 20))
    API_MAX_PAGE_SIZE = int(os.environ.get('API_MAX_PAGE_SIZE', 100))

    @staticmethod
    def init_app(app):
        pass

class DevelopmentConfig(Config):
    """开发环境配置"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'nexus_stock.db')

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)
        # 确保 SQLite 目录存在
        instance_dir = os.path.join(basedir, 'instance')
        if not os.path.exists(instance_dir):
            os.makedirs(instance_dir)

class ProductionConfig(Config):
    """生产环境配置"""
    DEBUG = False
    
    DATABASE_URL = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'nexus_prod.db')
    # PostgreSQL URL 修正（部分平台使用 postgres://）
    if DATABASE_URL and DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)
    
    SQLALCHEMY_DATABASE_URI = DATABASE_URL

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_RECORD_QUERIES = False
    WTF_CSRF_ENABLED = False

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
