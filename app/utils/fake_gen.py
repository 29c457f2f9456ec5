import random
from faker import Faker
from faker.providers import BaseProvider

class AccessoryProvider(BaseProvider):
    """
    手机配件批发专用数据生成器
    生成机型 + 品类 + 颜色/材质组合的 SKU 名称
    """
    
    # 适配机型
    phone_models = [
        'iPhone 15', 'iPhone 15 Pro', 'iPhone 14', 'Galaxy S24', 'Galaxy A54',
        'Pixel 8', 'Xiaomi 14', 'Redmi Note 13', 'Huawei P60', 'OnePlus 12'
    ]
    
    # 配件品类
    accessory_types = [
        '硅胶保护壳', '透明防摔壳', '钢化膜', '防窥膜', '镜头膜',
        '磁吸支架', '快充数据线', '20W 充电头', '无线充电器', '手机挂绳'
    ]
    
    # 颜色 / 材质
    variants = [
        ('BLK', '黑色'), ('WHT', '白色'), ('CLR', '透明'), ('BLU', '蓝色'),
        ('PNK', '粉色'), ('GRN', '绿色'), ('LTH', '皮革'), ('CRB', '碳纤维')
    ]

    # 仓库区域
    zones = ['A', 'B', 'C', 'D']

    def accessory_sku(self):
        """生成 (编码后缀, SKU 名称)"""
        code, label = self.random_element(self.variants)
        name = f"{self.random_element(self.phone_models)} {self.random_element(self.accessory_types)} {label}"
        return code, name

    def bin_code(self):
        """生成货位编码，如 A-01-03"""
        return f"{self.random_element(self.zones)}-{random.randint(1, 20):02d}-{random.randint(1, 6):02d}"

# 初始化 Faker 并添加自定义 Provider
fake = Faker('zh_CN')
fake.add_provider(AccessoryProvider)
