"""
Pricing Engine Tests

Unit prices are computed from the catalog snapshot alone: size price,
half-and-half at the costlier flavor, border surcharge tiers and extras.
"""

import pytest

from orderflow.services.pricing import (
    BorderSurcharges,
    ItemSelection,
    PricingError,
    border_surcharge,
    has_border,
    price_line,
    unit_price,
)
from tests.conftest import make_catalog


@pytest.fixture
def margherita(catalog):
    return catalog.find_item(item_id="pz-margherita")


# ============================================================================
# SIZE AND BORDER
# ============================================================================

class TestSizeAndBorder:

    def test_large_with_border_uses_large_surcharge(self, catalog, margherita):
        selection = ItemSelection(size="G", border="catupiry")

        assert unit_price(margherita, selection, catalog) == 53.0

    def test_small_with_border_uses_small_surcharge(self, catalog, margherita):
        selection = ItemSelection(size="P", border="cheddar")

        assert unit_price(margherita, selection, catalog) == 34.0

    @pytest.mark.parametrize("border", [None, "", "none", "Sem Borda"])
    def test_no_border_labels_add_nothing(self, catalog, margherita, border):
        selection = ItemSelection(size="G", border=border)

        assert has_border(border) is False
        assert unit_price(margherita, selection, catalog) == 45.0

    def test_item_without_border_options_ignores_border(self, catalog):
        pasta = catalog.find_item(item_id="ms-bolonhesa")

        assert border_surcharge(pasta, ItemSelection(size="G", border="catupiry")) == 0.0

    def test_custom_surcharge_tiers(self, catalog, margherita):
        surcharges = BorderSurcharges(large=10.0, small=5.0)

        assert unit_price(margherita, ItemSelection(size="G", border="catupiry"), catalog, surcharges) == 55.0
        assert unit_price(margherita, ItemSelection(size="P", border="catupiry"), catalog, surcharges) == 35.0

    def test_flat_price_when_no_size_selected(self, catalog):
        soda = catalog.find_item(name="Refrigerante 2L")

        assert unit_price(soda, ItemSelection(), catalog) == 12.0

    def test_undeclared_size_is_rejected(self, catalog, margherita):
        with pytest.raises(PricingError):
            unit_price(margherita, ItemSelection(size="GG"), catalog)


# ============================================================================
# HALF-AND-HALF
# ============================================================================

class TestHalfAndHalf:

    def test_priced_at_costlier_flavor(self, catalog, margherita):
        selection = ItemSelection(size="G", flavors=("Margherita", "Calabresa"))

        assert unit_price(margherita, selection, catalog) == 50.0

    def test_flavor_order_does_not_matter(self, catalog, margherita):
        calabresa = catalog.find_item(item_id="pz-calabresa")
        forward = ItemSelection(size="G", flavors=("Margherita", "Calabresa"))
        backward = ItemSelection(size="G", flavors=("Calabresa", "Margherita"))

        assert unit_price(margherita, forward, catalog) == unit_price(calabresa, backward, catalog) == 50.0

    def test_border_applies_on_top_of_max(self, catalog, margherita):
        selection = ItemSelection(size="G", border="catupiry", flavors=("Margherita", "Calabresa"))

        assert unit_price(margherita, selection, catalog) == 58.0

    def test_unknown_flavor_is_rejected(self, catalog, margherita):
        selection = ItemSelection(size="G", flavors=("Margherita", "Quatro Queijos"))

        with pytest.raises(PricingError, match="Unknown flavor"):
            unit_price(margherita, selection, catalog)

    def test_category_without_half_and_half_is_rejected(self, catalog):
        pasta = catalog.find_item(item_id="ms-bolonhesa")
        selection = ItemSelection(size="G", flavors=("Espaguete à Bolonhesa", "Espaguete à Bolonhesa"))

        with pytest.raises(PricingError, match="not available"):
            unit_price(pasta, selection, catalog)

    def test_global_switch_disables_half_and_half(self):
        catalog = make_catalog(allow_half_and_half=False)
        margherita = catalog.find_item(item_id="pz-margherita")

        with pytest.raises(PricingError):
            unit_price(margherita, ItemSelection(size="G", flavors=("Margherita", "Calabresa")), catalog)


# ============================================================================
# EXTRAS AND LINES
# ============================================================================

class TestExtrasAndLines:

    def test_extras_are_summed(self, catalog, margherita):
        selection = ItemSelection(size="P", extras=("bacon", "azeitona"))

        assert unit_price(margherita, selection, catalog) == 38.0

    def test_unknown_extras_add_zero(self, catalog, margherita):
        selection = ItemSelection(size="P", extras=("bacon", "abacaxi"))

        assert unit_price(margherita, selection, catalog) == 35.0

    def test_line_total_multiplies_quantity(self, catalog, margherita):
        line = price_line(margherita, ItemSelection(size="G", border="catupiry"), 3, catalog)

        assert line.unit_price == 53.0
        assert line.line_total == 159.0
        assert line.breakdown == {"base": 45.0, "border": 8.0, "extras": 0.0}

    def test_unavailable_item_is_rejected(self, catalog):
        special = catalog.find_item(item_id="pz-especial")

        with pytest.raises(PricingError, match="unavailable"):
            price_line(special, ItemSelection(size="G"), 1, catalog)

    def test_quantity_must_be_positive(self, catalog, margherita):
        with pytest.raises(PricingError):
            price_line(margherita, ItemSelection(size="G"), 0, catalog)


def test_half_and_half_is_max_not_average_or_sum():
    catalog = make_catalog()
    catalog.items[0].sizes["G"] = 30.0
    catalog.items[1].sizes["G"] = 45.0
    first, second = catalog.items[0], catalog.items[1]

    forward = unit_price(first, ItemSelection(size="G", flavors=(first.name, second.name)), catalog)
    backward = unit_price(second, ItemSelection(size="G", flavors=(second.name, first.name)), catalog)

    assert forward == backward == 45.0
