"""Official data.go.kr BidPublicInfoService client (입찰공고정보서비스).

One GET per page:
    {base_url}/{operation}?serviceKey=..&pageNo=..&numOfRows=..&inqryDiv=1
        &inqryBgnDt=YYYYMMDDHHmm&inqryEndDt=YYYYMMDDHHmm&type=json

An HTTP 200 can still carry an application error in its header, so callers
must check ``G2BPage.raise_for_result()`` on every page.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import quote

import requests

from app.core.errors import RangeTooLargeError, UpstreamApiError, UpstreamTransportError
from app.utils.time_windows import TimeWindow

logger = logging.getLogger(__name__)

SUCCESS_CODE = "00"
RANGE_TOO_LARGE_CODE = "07"
ERROR_ENVELOPE_KEY = "nkoneps.com.response.ResponseError"
RESPONSE_BODY_TRUNCATE = 2000

OPERATION_BY_BIZ: dict[str, str] = {
    "cnstwk": "getBidPblancListInfoCnstwk",  # 공사
    "servc": "getBidPblancListInfoServc",    # 용역
    "thng": "getBidPblancListInfoThng",      # 물품
    "frgcpt": "getBidPblancListInfoFrgcpt",  # 외자
}


def operation_for(biz: str) -> str:
    """Operation name for a business type; ValueError for unknown types."""
    try:
        return OPERATION_BY_BIZ[biz]
    except KeyError:
        raise ValueError(f"Invalid biz. Use one of: {', '.join(OPERATION_BY_BIZ)}") from None


def extract_header(payload: Any) -> tuple[Optional[str], Optional[str]]:
    """(resultCode, resultMsg) from response.header or the ResponseError envelope."""
    if not isinstance(payload, dict):
        return None, None
    for envelope in (payload.get("response"), payload.get(ERROR_ENVELOPE_KEY)):
        header = envelope.get("header") if isinstance(envelope, dict) else None
        if not isinstance(header, dict):
            continue
        code, msg = header.get("resultCode"), header.get("resultMsg")
        if code is not None or msg is not None:
            return (
                str(code) if code is not None else None,
                str(msg) if msg is not None else None,
            )
    return None, None


def _body(payload: Any) -> dict[str, Any]:
    response = payload.get("response") if isinstance(payload, dict) else None
    body = response.get("body") if isinstance(response, dict) else None
    return body if isinstance(body, dict) else {}


def extract_items(payload: Any) -> list[dict[str, Any]]:
    """
    Items arrive as body.items.item (list or a single object) or body.items (list).
    Empty results come back as "" or missing keys.
    """
    items = _body(payload).get("items")
    if not items:
        return []
    if isinstance(items, dict):
        item = items.get("item")
        if isinstance(item, list):
            return [i for i in item if isinstance(i, dict)]
        if isinstance(item, dict):
            return [item]
        return []
    if isinstance(items, list):
        return [i for i in items if isinstance(i, dict)]
    return []


def extract_total_count(payload: Any) -> Optional[int]:
    tc = _body(payload).get("totalCount")
    if isinstance(tc, bool):
        return None
    if isinstance(tc, int):
        return tc
    if isinstance(tc, str) and tc.strip():
        try:
            return int(tc.strip())
        except ValueError:
            return None
    return None


@dataclass
class G2BPage:
    """One decoded page of a list operation."""

    url: str
    status: int
    payload: Any
    text: str = ""
    result_code: Optional[str] = None
    result_msg: Optional[str] = None
    items: list[dict[str, Any]] = field(default_factory=list)
    total_count: Optional[int] = None

    @classmethod
    def from_payload(cls, url: str, status: int, payload: Any, text: str = "") -> "G2BPage":
        code, msg = extract_header(payload)
        return cls(
            url=url,
            status=status,
            payload=payload,
            text=text,
            result_code=code,
            result_msg=msg,
            items=extract_items(payload),
            total_count=extract_total_count(payload),
        )

    @property
    def ok(self) -> bool:
        return self.result_code is None or self.result_code == SUCCESS_CODE

    def raise_for_result(self) -> None:
        """Raise RangeTooLargeError (07) or UpstreamApiError for a non-success header."""
        if self.ok:
            return
        if self.result_code == RANGE_TOO_LARGE_CODE:
            raise RangeTooLargeError(self.result_code, self.result_msg, url=self.url)
        raise UpstreamApiError(self.result_code or "?", self.result_msg, url=self.url)


class G2BClient:
    """
    data.go.kr BidPublicInfoService list client.
    No retries: transport failures surface as UpstreamTransportError.
    """

    def __init__(
        self,
        service_key: str,
        base_url: str,
        timeout_seconds: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.service_key = service_key
        self.base_url = (base_url or "").rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def fetch_page(
        self,
        operation: str,
        window: TimeWindow,
        page_no: int = 1,
        num_rows: int = 100,
        inqry_div: str = "1",
    ) -> G2BPage:
        url = f"{self.base_url}/{operation}"
        params: dict[str, Any] = {
            "serviceKey": self.service_key,
            "pageNo": page_no,
            "numOfRows": num_rows,
            "inqryDiv": inqry_div,
            "type": "json",
            **window.as_params(),
        }

        try:
            resp = self._session.get(
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            raise UpstreamTransportError(f"G2B request failed: {e}", url=url) from e

        text = resp.text if isinstance(resp.text, str) else ""
        # resp.url carries the service key
        safe_url = _redact(resp.url or url, self.service_key)
        if not resp.ok:
            raise UpstreamTransportError(
                f"G2B API returned HTTP {resp.status_code}",
                status=resp.status_code,
                url=safe_url,
                body=text[:RESPONSE_BODY_TRUNCATE],
            )

        try:
            payload = resp.json()
        except ValueError:
            raise UpstreamTransportError(
                "G2B API returned a non-JSON body",
                status=resp.status_code,
                url=safe_url,
                body=text[:RESPONSE_BODY_TRUNCATE],
            ) from None

        page = G2BPage.from_payload(safe_url, resp.status_code, payload, text)
        logger.debug(
            "G2B %s page=%s window=%s code=%s items=%s total=%s",
            operation, page_no, window.to_dict(), page.result_code, len(page.items), page.total_count,
        )
        return page


def _redact(url: str, secret: str) -> str:
    if not secret:
        return url
    return url.replace(quote(secret, safe=""), "***").replace(secret, "***")
