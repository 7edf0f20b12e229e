# Overview: The closed set of roles a user identity can hold.

import enum


class Role(str, enum.Enum):
    """
    User roles.

    Closed set: every identity holds exactly one of these (or none, when the
    role record is missing). Values are the stored representation.
    """
    ADMINISTRATOR = "administrator"
    FARMACEUTICO = "farmaceutico"
    OPERADOR_CAIXA = "operador_caixa"


ROLE_LABELS = {
    Role.ADMINISTRATOR: "Administrator",
    Role.FARMACEUTICO: "Pharmacist",
    Role.OPERADOR_CAIXA: "Cashier",
}

# Role given to users created by an administrator when none is specified
DEFAULT_NEW_USER_ROLE = Role.OPERADOR_CAIXA
