from .store import Cart, CartLine, SESSION_KEY, cart_total, to_money

__all__ = ["Cart", "CartLine", "SESSION_KEY", "cart_total", "to_money"]
