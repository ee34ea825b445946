"""
Economic Model

Pure functions converting energy quantities and prices into SEK cost/revenue.
All prices are SEK/kWh, all quantities kWh.
"""


def buy_price(kwh: float, price: float, energy_tax: float, grid_benefit: float) -> float:
    """Cost of importing kwh from the grid."""
    return kwh * (price + energy_tax - grid_benefit)


def sell_price(kwh: float, price: float, energy_tax_reduction: float) -> float:
    """Revenue for exporting kwh to the grid."""
    return kwh * (price + energy_tax_reduction)


def cash_flow(
    grid_import_kwh: float,
    grid_export_kwh: float,
    price: float,
    energy_tax: float,
    energy_tax_reduction: float,
    grid_benefit: float,
) -> float:
    """
    Net money flow for one hour of grid exchange.

    Positive when more energy was exported than imported (revenue),
    negative when the hour was a net import (cost).
    """
    net_export = grid_export_kwh - grid_import_kwh
    if net_export > 0:
        return sell_price(net_export, price, energy_tax_reduction)
    if net_export < 0:
        return -buy_price(-net_export, price, energy_tax, grid_benefit)
    return 0.0


def round_float(value: float, decimals: int) -> float:
    return round(float(value), decimals)


def two_decimals(value: float) -> float:
    return round_float(value, 2)
