from .catalog import MenuItem, RecipeRequirement
from .orders import Order, OrderLine
from .inventory import Ingredient, StockChangeLog
from .payments import Payment

__all__ = [
    'MenuItem', 'RecipeRequirement',
    'Order', 'OrderLine',
    'Ingredient', 'StockChangeLog',
    'Payment',
]
