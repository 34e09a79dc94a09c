"""Test line-item classification and subtotal."""
from decimal import Decimal

import pytest

from verticals.recargo.classifier import classify, is_surcharge
from verticals.recargo.config import SurchargeConfig
from verticals.recargo.models import LineItem
from verticals.recargo.subtotal import subtotal, surcharge_amount

from fakes import line


def test_marker_attribute_wins_over_title():
    item = line("1", "Ajuste", 1, "5.20", custom_attributes={"_recargo_equivalencia": "0.052"})
    assert is_surcharge(item)


def test_canonical_label_detected():
    assert is_surcharge(line("1", "Recargo de Equivalencia (5.2%)", 1, "5.20"))


def test_lenient_label_is_case_insensitive():
    assert is_surcharge(line("1", "RECARGO equivalencia", 1, "3.00"))
    assert is_surcharge(line("1", "recargo", 1, "3.00"))


def test_regular_goods_not_surcharge():
    assert not is_surcharge(line("1", "Camiseta azul", 2, "10.00"))


def test_classify_partitions_lines():
    items = [
        line("g1", "Camiseta", 2, "10.00"),
        line("s1", "Recargo de Equivalencia (5.2%)", 1, "1.04"),
        line("g2", "Pantalón", 0, "30.00"),
        line("s2", "Recargo de Equivalencia (5.2%)", 0, "9.99"),
    ]
    result = classify(items)
    assert [i.id for i in result.goods] == ["g1"]
    assert [i.id for i in result.surcharges] == ["s1"]
    assert {i.id for i in result.removed} == {"g2", "s2"}


def test_classify_keeps_duplicates():
    items = [
        line("s1", "Recargo de Equivalencia (5.2%)", 1, "3.00"),
        line("s2", "Recargo de Equivalencia (5.2%)", 1, "5.20"),
    ]
    assert len(classify(items).surcharges) == 2


def test_custom_label_config():
    config = SurchargeConfig(label="Equivalence surcharge", lenient_label="surcharge")
    assert is_surcharge(line("1", "Equivalence surcharge", 1, "1.00"), config)
    assert not is_surcharge(line("1", "Recargo", 1, "1.00"), config)


def test_negative_quantity_rejected():
    with pytest.raises(ValueError):
        line("1", "Camiseta", -1, "10.00")


def test_effective_price_prefers_discount():
    assert line("1", "A", 1, "25.00", discounted="20.00").effective_unit_price == Decimal("20.00")
    assert line("1", "A", 1, "25.00", discounted="0").effective_unit_price == Decimal("25.00")
    assert line("1", "A", 1, "25.00").effective_unit_price == Decimal("25.00")


def test_subtotal_uses_discounted_prices():
    goods = [
        line("1", "A", 2, "10.00"),
        line("2", "B", 1, "25.00", discounted="20.00"),
    ]
    assert subtotal(goods) == Decimal("40.00")


def test_subtotal_empty_is_zero():
    assert subtotal([]) == Decimal("0")


def test_subtotal_is_exact():
    goods = [LineItem(id=str(i), title="x", quantity=1, unit_price=Decimal("0.10")) for i in range(3)]
    assert subtotal(goods) == Decimal("0.30")


def test_surcharge_amount_unrounded():
    assert surcharge_amount(Decimal("40.00"), Decimal("0.052")) == Decimal("2.08000")
    assert surcharge_amount(Decimal("0.10"), Decimal("0.052")) == Decimal("0.00520")
