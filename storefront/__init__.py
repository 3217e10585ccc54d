"""
Backend de la boutique GAM (storefront).
Organisation feature-first: cart, orders, inventory, payments, admin.
"""
