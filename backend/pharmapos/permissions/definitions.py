# Overview: Protected resources and the static role -> resource access table.
# Each resource is defined as: (code, name, description, menu path)

import enum

from .roles import Role


class Resource(str, enum.Enum):
    """Screens / API areas gated by role."""
    DASHBOARD = "dashboard"
    CUSTOMERS = "customers"
    PRODUCTS = "products"
    REPORTS = "reports"
    USERS = "users"


# Menu order is the order of this list
RESOURCE_DEFINITIONS = [
    (
        Resource.DASHBOARD,
        "Dashboard",
        "Overview figures and low-stock alerts",
        "/",
    ),
    (
        Resource.CUSTOMERS,
        "Customers",
        "Customer records",
        "/clientes",
    ),
    (
        Resource.PRODUCTS,
        "Products",
        "Product records, stock and selling",
        "/produtos",
    ),
    (
        Resource.REPORTS,
        "Reports",
        "Sales summaries and CSV/PDF export",
        "/relatorios",
    ),
    (
        Resource.USERS,
        "Users",
        "User administration",
        "/usuarios",
    ),
]


ACCESS_POLICY: dict[Role, frozenset[Resource]] = {
    Role.ADMINISTRATOR: frozenset(Resource),
    Role.FARMACEUTICO: frozenset({
        Resource.DASHBOARD,
        Resource.CUSTOMERS,
        Resource.PRODUCTS,
    }),
    Role.OPERADOR_CAIXA: frozenset({
        Resource.DASHBOARD,
        Resource.CUSTOMERS,
    }),
}
