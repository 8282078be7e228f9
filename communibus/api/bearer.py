from fastapi.security import HTTPBearer

# HTTP Bearer authentication schemes for the customer and operator apps
bearer_customer = HTTPBearer(scheme_name="Customer HTTPBearer")
bearer_operator = HTTPBearer(scheme_name="Operator HTTPBearer")
