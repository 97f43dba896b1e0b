"""
Клиент внешнего API данных о ТС (штрафы и RC-данные)
"""
import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import httpx
from sqlalchemy.orm import Session
from fleetguard.config import get_settings
from fleetguard.database import SessionLocal
from fleetguard.exceptions import ExternalApiError
from fleetguard.models import ApiRequestLog
from fleetguard.logger import logger


CHALLAN_CHECK_ENDPOINT = "/challan/check"
RC_DETAILS_ENDPOINT = "/rc/details"

# Ограничение размера тела ответа в журнале
MAX_LOGGED_BODY_LENGTH = 10000

# Название нарушения, если API его не передал
UNKNOWN_OFFENCE = "Не указано"


@dataclass
class ViolationRecord:
    """
    Запись о нарушении из внешнего API
    """
    challan_number: str
    challan_date: Optional[str] = None
    amount: Any = None
    challan_status: Optional[str] = None
    accused_name: Optional[str] = None
    state: Optional[str] = None
    payment_url: Optional[str] = None
    offence_details: Optional[str] = None
    offences: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> 'ViolationRecord':
        """
        Разбор записи из ответа API (поля в camelCase)
        """
        offence_details = item.get("offenseDetails") or item.get("offenceDetails")
        offences = item.get("offences")
        # У штрафа всегда есть хотя бы одна запись о нарушении
        if not isinstance(offences, list) or not offences:
            offences = [{"offence_name": offence_details or UNKNOWN_OFFENCE, "penalty": item.get("amount")}]

        return cls(
            challan_number=str(item.get("challanNo") or "").strip(),
            challan_date=item.get("challanDate"),
            amount=item.get("amount"),
            challan_status=item.get("challanStatus"),
            accused_name=item.get("accusedName"),
            state=item.get("state"),
            payment_url=item.get("paymentUrl"),
            offence_details=offence_details,
            offences=offences,
            raw=item,
        )


@dataclass
class GatewayResponse:
    success: bool
    data: Any = None
    message: Optional[str] = None


class VehicleDataGateway:
    """
    Клиент внешнего API

    Каждый вызов записывается в журнал api_request_logs (endpoint, параметры,
    код ответа, тело, время выполнения) в отдельной сессии БД.
    Неуспешный ответ приводит к ExternalApiError.
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.external_api_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.external_api_key
        self.timeout = timeout or settings.external_api_timeout
        self.session_factory = session_factory
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "X-API-KEY": self.api_key,
                    "Content-Type": "application/json"
                }
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def check_violations(self, company_id: int, registration_number: str) -> GatewayResponse:
        """
        Проверка штрафов по регистрационному номеру

        Args:
            company_id: ID компании (для журнала запросов)
            registration_number: Регистрационный номер ТС

        Returns:
            GatewayResponse с data: List[ViolationRecord]

        Raises:
            ExternalApiError: Ошибка сети или неуспешный ответ API
        """
        body = self._post(company_id, CHALLAN_CHECK_ENDPOINT, {"reg_number": registration_number, "type": 1})
        items = body.get("data") or []
        if not isinstance(items, list):
            items = [items]

        records = []
        for item in items:
            if not isinstance(item, dict):
                continue
            record = ViolationRecord.from_api(item)
            if not record.challan_number:
                logger.warning("Запись о штрафе без номера пропущена", extra={
                    "company_id": company_id,
                    "registration_number": registration_number,
                    "event_type": "external_api",
                    "event_category": "challan_check"
                })
                continue
            records.append(record)

        return GatewayResponse(success=True, data=records, message=body.get("message"))

    def get_registration_details(self, company_id: int, registration_number: str) -> GatewayResponse:
        """
        Получение данных регистрационного сертификата (RC)

        Returns:
            GatewayResponse с data: dict

        Raises:
            ExternalApiError: Ошибка сети или неуспешный ответ API
        """
        body = self._post(company_id, RC_DETAILS_ENDPOINT, {"reg_number": registration_number})
        data = body.get("data")
        return GatewayResponse(success=True, data=data if isinstance(data, dict) else {}, message=body.get("message"))

    def _post(self, company_id: int, endpoint: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        start_time = time.monotonic()
        status_code: Optional[int] = None
        response_body: Any = None

        try:
            response = self._get_client().post(endpoint, json=parameters)
            status_code = response.status_code
            try:
                response_body = response.json()
            except ValueError:
                response_body = {"message": response.text}

            if response.is_error:
                message = response_body.get("message") if isinstance(response_body, dict) else None
                raise ExternalApiError(status_code, message or f"HTTP {status_code}")

            if not isinstance(response_body, dict) or not response_body.get("success"):
                message = response_body.get("message") if isinstance(response_body, dict) else None
                raise ExternalApiError(status_code, message or "Неуспешный ответ API")

            return response_body
        except httpx.HTTPError as e:
            response_body = {"message": str(e)}
            logger.warning("Ошибка соединения с внешним API", extra={
                "company_id": company_id,
                "endpoint": endpoint,
                "error": str(e),
                "error_type": type(e).__name__,
                "event_type": "external_api",
                "event_category": endpoint.strip("/").replace("/", "_")
            })
            raise ExternalApiError(None, str(e)) from e
        except ExternalApiError as e:
            logger.warning("Внешний API вернул ошибку", extra={
                "company_id": company_id,
                "endpoint": endpoint,
                "status_code": e.status_code,
                "error": e.message,
                "event_type": "external_api",
                "event_category": endpoint.strip("/").replace("/", "_")
            })
            raise
        finally:
            execution_time_ms = int((time.monotonic() - start_time) * 1000)
            self._log_request(company_id, endpoint, parameters, status_code, response_body, execution_time_ms)

    def _log_request(
        self,
        company_id: int,
        endpoint: str,
        parameters: Dict[str, Any],
        status_code: Optional[int],
        response_body: Any,
        execution_time_ms: int
    ) -> None:
        """
        Запись обращения в журнал; ошибка записи не прерывает вызов API
        """
        db = self.session_factory()
        try:
            body = json.dumps(response_body, ensure_ascii=False, default=str) if response_body is not None else None
            if body and len(body) > MAX_LOGGED_BODY_LENGTH:
                body = body[:MAX_LOGGED_BODY_LENGTH]
            db.add(ApiRequestLog(
                company_id=company_id,
                endpoint=endpoint,
                method="POST",
                request_params=json.dumps(parameters, ensure_ascii=False),
                response_code=status_code,
                response_body=body,
                execution_time_ms=execution_time_ms
            ))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error("Ошибка записи журнала запросов к внешнему API", extra={
                "company_id": company_id,
                "endpoint": endpoint,
                "error": str(e),
                "event_type": "external_api",
                "event_category": "request_log"
            }, exc_info=True)
        finally:
            db.close()
