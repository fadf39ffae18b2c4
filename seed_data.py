# Sample orders loaded when the store holds no ledger yet
from typing import List

from schemas import Order, OrderStatus, Region, SalesChannel


def sample_orders() -> List[Order]:
    return [
        Order(
            id="#DH1210",
            order_date="2024-03-10",
            ship_date="2024-03-12",
            status=OrderStatus.COMPLETED,
            channel=SalesChannel.FACEBOOK,
            brand="Gentle Monster",
            product_name="Lilit 01 Glasses",
            unit_price=5500000,
            quantity=1,
            discount=200000,
            shipping_fee=35000,
            total_amount=5335000,
            deposit=500000,
            cod_amount=4835000,
            cost_price=3800000,
            profit=1335000,
            customer_name="Nguyen Van A",
            phone="0901234567",
            address="123 Le Loi",
            city="Ho Chi Minh",
            region=Region.SOUTH,
            carrier="GHTK",
            tracking_code="GHTK123456789",
        ),
        Order(
            id="#DH1211",
            order_date="2024-03-11",
            ship_date="2024-03-13",
            status=OrderStatus.SHIPPING,
            channel=SalesChannel.INSTAGRAM,
            brand="Dior",
            product_name="Lady Dior Mini Black",
            unit_price=125000000,
            quantity=1,
            discount=5000000,
            shipping_fee=150000,
            total_amount=120150000,
            deposit=20000000,
            cod_amount=100150000,
            cost_price=95000000,
            profit=20150000,
            customer_name="Tran Thi B",
            phone="0912345678",
            address="456 Phan Chau Trinh",
            city="Da Nang",
            region=Region.SOUTH,
            carrier="Viettel Post",
            tracking_code="VT77889900",
        ),
        Order(
            id="#DH1212",
            order_date="2024-03-12",
            ship_date="",
            status=OrderStatus.PENDING,
            channel=SalesChannel.ZALO,
            brand="Vivienne Westwood",
            product_name="Mini Bas Relief Pendant",
            unit_price=4200000,
            quantity=2,
            discount=0,
            shipping_fee=30000,
            total_amount=8430000,
            deposit=1000000,
            cod_amount=7430000,
            cost_price=2800000,
            profit=2830000,
            customer_name="Le Hoang C",
            phone="0987654321",
            address="789 Hoang Hoa Tham",
            city="Hanoi",
            region=Region.NORTH,
            carrier="",
            tracking_code="",
        ),
    ]
