import base64, json, requests
from requests import Response

from communibus.src.constants import (
    OPENOBSERVE_HOST,
    OPENOBSERVE_ORG,
    OPENOBSERVE_PASSWORD,
    OPENOBSERVE_PORT,
    OPENOBSERVE_PROTOCOL,
    OPENOBSERVE_STREAM,
    OPENOBSERVE_USERNAME,
)

basicAuth = base64.b64encode(
    f"{OPENOBSERVE_USERNAME}:{OPENOBSERVE_PASSWORD}".encode("utf-8")
).decode("utf-8")
ingestHeaders = {
    "Content-type": "application/json",
    "Authorization": f"Basic {basicAuth}",
}
ingestURL = (
    f"{OPENOBSERVE_PROTOCOL}://{OPENOBSERVE_HOST}:{OPENOBSERVE_PORT}"
    f"/api/{OPENOBSERVE_ORG}/{OPENOBSERVE_STREAM}/_json"
)


def logEvent(eventData: dict) -> Response:
    """
    Ship one audit event to the proposal event stream.

    Decimals, datetimes and times are sent in their string form.

    Example event:
        {
            "_method": "POST",
            "_path": "/company/route/proposal/vote",
            "_app_id": 1,
            "_customer_id": 7,
            "proposal_id": 3,
            "vote_type": 3
        }
    """
    return requests.post(
        ingestURL, headers=ingestHeaders, data=json.dumps(eventData, default=str)
    )
