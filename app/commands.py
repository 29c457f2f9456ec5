import sys
import click
import random
from decimal import Decimal
from flask.cli import with_appcontext
from app.extensions import db
from app.models.biz import Sku, Customer
from app.models.stock import Warehouse, BinLocation, StockRecord, LedgerEntry
from app.models.trade import SalesOrder
from app.services.inventory_service import InventoryService
from app.utils.fake_gen import fake


@click.command('status')
@with_appcontext
def status():
    """
    [验证指令] 查看当前数据库中的数据统计。
    """
    click.echo(click.style('📊 NEXUS 库存数据库状态监控:', fg='cyan', bold=True))
    
    w_count = Warehouse.query.count()
    s_count = Sku.query.count()
    r_count = StockRecord.query.count()
    l_count = LedgerEntry.query.count()
    o_count = SalesOrder.query.count()

    click.echo(f" - 仓库 (Warehouses): \t{w_count}")
    click.echo(f" - 规格 (SKUs): \t{s_count}")
    click.echo(f" - 库存记录 (Stock): \t{r_count}")
    click.echo(f" - 库存流水 (Ledger): \t{l_count}")
    click.echo(f" - 销售订单 (Orders): \t{o_count}")

    if s_count > 0:
        click.echo(click.style('✔ 数据库连接正常，数据已存在。', fg='green'))
    else:
        click.echo(click.style('⚠ 数据库为空，请运行 flask forge 生成数据。', fg='yellow'))


@click.command('forge')
@click.option('--tenant', default=1, help='写入的租户 ID (默认 1)')
@click.option('--scale', default=1, help='数据规模倍数 (默认 1 倍)')
@with_appcontext
def forge(tenant, scale):
    """
    [造物主指令] 重建表结构并生成演示数据。
    期初库存通过入库操作写入，保证流水与库存可对账。
    警告：这将清除数据库中的现有数据！
    """
    click.echo(click.style(f'⚡ 初始化演示数据 (租户: {tenant}, 规模: {scale}x)...', fg='cyan', bold=True))

    # 1. 清除旧数据
    db.drop_all()
    db.create_all()

    # 2. 仓库与货位
    click.echo('正在建设仓库与货位...')
    warehouses = init_warehouses(tenant, scale)

    # 3. SKU 与客户
    click.echo('正在注册 SKU 与客户...')
    skus = init_skus(tenant, scale)
    init_customers(tenant, scale)

    # 4. 期初库存
    click.echo('正在写入期初库存...')
    init_stock(tenant, warehouses, skus)

    click.echo(click.style('✔ 演示数据构建完成！', fg='green', bold=True))
    click.echo(f"数据统计: {len(warehouses)}仓库, {len(skus)}SKU")


def init_warehouses(tenant_id, scale=1):
    """初始化仓库，每仓若干货位"""
    warehouse_data = [
        ('SZ-01', '深圳主仓', '广东省深圳市龙华区'),
        ('HK-01', '香港转运仓', '香港葵涌货柜码头'),
        ('DE-01', '法兰克福海外仓', 'Frankfurt am Main'),
    ]
    warehouses = []
    for code, name, address in warehouse_data:
        wh = Warehouse(tenant_id=tenant_id, code=code, name=name, address=address)
        db.session.add(wh)
        db.session.flush()

        bin_codes = set()
        while len(bin_codes) < 5 * scale:
            bin_codes.add(fake.bin_code())
        for bin_code in sorted(bin_codes):
            db.session.add(BinLocation(tenant_id=tenant_id, warehouse_id=wh.id, code=bin_code))
        warehouses.append(wh)
    db.session.commit()
    return warehouses


def init_skus(tenant_id, scale=1):
    sku_count = 20 * scale
    skus = []
    click.echo(f'  → 创建 {sku_count} 个 SKU...')
    for i in range(sku_count):
        suffix, name = fake.accessory_sku()
        sku = Sku(
            tenant_id=tenant_id,
            code=f"ACC-{i:05d}-{suffix}",
            name=name,
            wholesale_price=Decimal(str(round(random.uniform(0.8, 25), 2)))
        )
        db.session.add(sku)
        skus.append(sku)
    db.session.commit()
    return skus


def init_customers(tenant_id, scale=1):
    """每个等级都生成若干客户"""
    for tier in Customer.TIERS:
        for _ in range(2 * scale):
            db.session.add(Customer(
                tenant_id=tenant_id,
                name=fake.company(),
                tier=tier,
                contact_person=fake.name(),
                phone=fake.phone_number(),
                email=fake.email()
            ))
    db.session.commit()


def init_stock(tenant_id, warehouses, skus):
    """每个 SKU 随机分布到 1-2 个仓库，部分放入货位，部分留在暂存区"""
    for sku in skus:
        for wh in random.sample(warehouses, k=random.randint(1, 2)):
            bins = wh.bins.all()
            bin_location = random.choice(bins + [None])
            InventoryService.inbound(
                tenant_id, None, sku.id, wh.id, random.randint(20, 500),
                bin_location_id=bin_location.id if bin_location else None,
                reference_type='INIT', notes='系统初始化入库'
            )
    click.echo(f'  ✓ 库存初始化完成')


@click.command('reconcile')
@click.option('--tenant', default=1, help='租户 ID')
@click.option('--sku', 'sku_id', type=int, default=None, help='只核对指定 SKU')
@click.option('--warehouse', 'warehouse_id', type=int, default=None, help='只核对指定仓库')
@with_appcontext
def reconcile(tenant, sku_id, warehouse_id):
    """
    [对账指令] 核对流水合计与库存在库数量。
    存在差异时以非零状态退出。
    """
    mismatches = InventoryService.reconcile(tenant, sku_id=sku_id, warehouse_id=warehouse_id)
    if not mismatches:
        click.echo(click.style('✔ 流水与库存一致。', fg='green'))
        return

    click.echo(click.style(f'✘ 发现 {len(mismatches)} 处差异:', fg='red', bold=True))
    for m in mismatches:
        click.echo(f" - SKU {m['sku_id']} @ 仓库 {m['warehouse_id']}: "
                   f"流水 {m['ledger_quantity']} / 在库 {m['on_hand']} (差 {m['difference']:+d})")
    sys.exit(1)
