import enum

class Role(str, enum.Enum):
    admin = "ADMIN"
    manager = "MANAGER"
    worker = "WORKER"

class MovementType(str, enum.Enum):
    delivery = "DELIVERY"
    usage = "USAGE"
    adjustment = "ADJUSTMENT"


# Rôles autorisés à comparer un rapport ERP et appliquer des corrections
RECONCILIATION_ROLES = {Role.admin, Role.manager}
