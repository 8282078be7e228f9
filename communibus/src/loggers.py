from typing import Union
from communibus.src.db import CustomerToken, OperatorToken
from communibus.src import openobserve
from communibus.src.schemas import RequestInfo
from communibus.src.enums import AppID


def logEvent(
    token: Union[CustomerToken, OperatorToken],
    requestInfo: RequestInfo,
    data: dict,
) -> None:
    """
    Log an event to OpenObserve with request and user context.

    Args:
        token (Union[CustomerToken, OperatorToken]): Authenticated user token.
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Additional event-specific details to include in the log.

    Notes:
        - Automatically attaches `_app_id`, `_method`, `_path`, `_company_id` and user-specific ID.
        - User-specific key depends on the app:
            - Customer → `_customer_id`
            - Operator → `_operator_id`
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
        "_company_id": token.company_id,
    }

    if requestInfo.app_id == AppID.CUSTOMER and isinstance(token, CustomerToken):
        logDetails["_customer_id"] = token.customer_id
    elif requestInfo.app_id == AppID.OPERATOR and isinstance(token, OperatorToken):
        logDetails["_operator_id"] = token.operator_id

    logDetails.update(data)
    openobserve.logEvent(logDetails)
