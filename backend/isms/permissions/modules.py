# Overview: Application modules that permissions are granted against.
# Each module is defined as: (id, name, description)

MODULES = [
    ("dashboard", "Dashboard", "View dashboard overview"),
    ("inventory", "Inventory", "Manage products and stock"),
    ("pos", "POS/Sales", "Process sales transactions"),
    ("installments", "Installments", "Manage installment/credit sales"),
    ("returns", "Returns", "Process returns and refunds"),
    ("suppliers", "Suppliers", "Manage suppliers"),
    ("purchase-orders", "Purchase Orders", "Create and manage purchase orders"),
    ("stock-count", "Stock Count", "Perform stock counts"),
    ("expenses", "Expenses", "Track business expenses"),
    ("profit-loss", "Profit & Loss", "View financial reports"),
    ("reports", "Reports", "Generate and view reports"),
    ("users", "User Management", "Manage users and roles"),
    ("settings", "Settings", "System settings"),
]

MODULE_IDS = [m[0] for m in MODULES]
