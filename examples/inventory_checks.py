"""Example suite exercising continuing checks, halting requirements and sub-tests."""

from dataclasses import dataclass

from verity import Suite

suite = Suite("inventory")


@dataclass
class Item:
    sku: str
    quantity: int
    tags: frozenset = frozenset()


STOCK = {
    "A-100": Item("A-100", 12, frozenset({"fragile"})),
    "B-200": Item("B-200", 0),
}


@suite.test
def lookup(t):
    item = STOCK.get("A-100")
    t.require.not_none(item, "missing sku {}", "A-100")
    t.check.equal(12, item.quantity)
    t.check.contains(item.tags, "fragile")


@suite.test
def restock(t):
    for sku, item in STOCK.items():
        t.run(sku, lambda c, item=item: c.check.true(item.quantity >= 0, "negative stock"))


@suite.test(parallel=True)
def records(t):
    t.check.equal(Item("B-200", 0), STOCK["B-200"])
    t.check.almost_equal(0.3, 0.1 + 0.2, 1e-9)
