import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Any, Callable, Dict, Optional, Type

import requests
from bs4 import BeautifulSoup

from cambio_hub.core.exceptions import ParseError, SourceUnavailableError
from cambio_hub.core.models import RateSample, SourceDescriptor, Variation
from cambio_hub.core.variation import stable_variation
from cambio_hub.parser_service.config import ParserConfig, get_parser_config
from cambio_hub.parser_service.parsing import (
    clean_percent_text,
    infer_direction,
    parse_change_text,
    parse_rate_text,
    validate_rate,
)

logger = logging.getLogger("cambio_hub.parser")

# реестр клиентов: ключ (provider или kind источника) -> класс
_FETCHERS: Dict[str, Type["BaseRateFetcher"]] = {}


def register_fetcher(key: str) -> Callable:
    """Декоратор регистрации клиента в реестре"""

    def decorator(cls):
        _FETCHERS[key] = cls
        return cls

    return decorator


def create_fetcher(source: SourceDescriptor,
                   config: Optional[ParserConfig] = None,
                   session: Optional[requests.Session] = None) -> "BaseRateFetcher":
    """
    Создать клиента для источника.
    Специализированный provider имеет приоритет над типом источника
    """
    key = source.provider or source.kind
    fetcher_cls = _FETCHERS.get(key)
    if fetcher_cls is None:
        raise ValueError(
            f"Нет клиента для источника '{source.name}' (ключ '{key}'). "
            f"Доступные: {sorted(_FETCHERS)}"
        )
    return fetcher_cls(source, config=config, session=session)


def _dig(data: Any, path: str) -> Any:
    """Значение по пути через точку: "USDBRL.bid" """
    value = data
    for part in path.split("."):
        if isinstance(value, list):
            value = value[int(part)]
        else:
            value = value[part]
    return value


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return parse_change_text(str(value))


class BaseRateFetcher(ABC):
    """
    Абстрактный базовый класс для клиентов источников курса.
    Один вызов fetch() - одна попытка, повторы делает резолвер
    """

    def __init__(self, source: SourceDescriptor,
                 config: Optional[ParserConfig] = None,
                 session: Optional[requests.Session] = None):
        """Инициализация клиента"""
        self.source = source
        self.config = config or get_parser_config()
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": self._user_agent()
        })

    def _user_agent(self) -> str:
        return self.config.USER_AGENT

    @abstractmethod
    def fetch(self) -> RateSample:
        """
        Получить курс из источника

        Returns:
            RateSample: проверенное измерение курса
        """
        pass

    def get_source_name(self) -> str:
        """Получить название источника данных"""
        return self.source.name

    def _validate(self, rate) -> float:
        return validate_rate(
            rate,
            source=self.source.name,
            rate_min=self.config.RATE_MIN,
            rate_max=self.config.RATE_MAX,
        )

    def _make_request(self, url: str, accept: str = "application/json") -> requests.Response:
        """Выполнить HTTP-запрос (одна попытка)"""
        name = self.get_source_name()
        try:
            logger.debug(f"Запрос к {url}")

            response = self.session.get(
                url,
                timeout=self.source.timeout,
                headers={"Accept": accept},
            )

        except requests.exceptions.Timeout as e:
            logger.warning(f"Таймаут при запросе к {url}: {e}")
            raise SourceUnavailableError(
                name, f"превышено время ожидания ({self.source.timeout}s)"
            )

        except requests.exceptions.ConnectionError as e:
            logger.warning(f"Ошибка подключения к {url}: {e}")
            raise SourceUnavailableError(
                name, "ошибка подключения. Проверьте интернет-соединение"
            )

        except requests.exceptions.RequestException as e:
            logger.warning(f"Ошибка при запросе к {url}: {e}")
            raise SourceUnavailableError(name, f"ошибка запроса: {str(e)}")

        if response.status_code == 200:
            logger.debug(f"Успешный ответ от {url}")
            return response
        elif response.status_code == 429:
            raise SourceUnavailableError(
                name, "превышен лимит запросов (429). Попробуйте позже"
            )
        else:
            raise SourceUnavailableError(
                name, f"HTTP {response.status_code}: {response.text[:100]}"
            )

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise SourceUnavailableError(self.source.name, f"ответ не JSON: {e}")

    def _sample(self, rate: float, variation: Optional[Variation] = None) -> RateSample:
        return RateSample(
            rate=rate,
            source=self.source.name,
            variation=variation or stable_variation(),
        )

    def close(self):
        """Закрыть сессию"""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


@register_fetcher("api")
class JsonApiFetcher(BaseRateFetcher):
    """
    Клиент для JSON API.
    selectors: rate - путь к курсу, change/percent - пути к изменению (необязательно)
    """

    def fetch(self) -> RateSample:
        response = self._make_request(self.source.url)
        data = self._json(response)

        rate_path = self.source.selectors.get("rate")
        if not rate_path:
            raise ValueError(f"Источник {self.source.name}: не задан selectors.rate")

        try:
            raw_rate = _dig(data, rate_path)
        except (KeyError, IndexError, TypeError, ValueError):
            raise SourceUnavailableError(
                self.source.name, f"в ответе нет поля {rate_path}"
            )

        if isinstance(raw_rate, (int, float)) and not isinstance(raw_rate, bool):
            rate = float(raw_rate)
        else:
            rate = parse_rate_text(str(raw_rate))

        rate = self._validate(rate)
        logger.debug(f"Курс {self.source.name}: {rate}")

        return self._sample(rate, self._variation(data))

    def _variation(self, data: Any) -> Variation:
        change_path = self.source.selectors.get("change")
        percent_path = self.source.selectors.get("percent")
        if not change_path:
            return stable_variation()

        try:
            change = _to_float(_dig(data, change_path))
            percent = _dig(data, percent_path) if percent_path else None
        except (KeyError, IndexError, TypeError, ValueError):
            logger.debug(f"{self.source.name}: изменение курса не найдено")
            return stable_variation()

        if change is None:
            return stable_variation()

        percent_text = clean_percent_text(str(percent)) if percent is not None else "0.00%"
        if not percent_text.endswith("%"):
            percent_text += "%"

        return Variation(
            percent=percent_text,
            absolute_change=change,
            direction=infer_direction(change),
        )


@register_fetcher("bcb_ptax")
class BcbPtaxFetcher(BaseRateFetcher):
    """
    Клиент для PTAX API Banco Central do Brasil.
    Курс публикуется только в рабочие дни, поэтому при пустом ответе
    запрашиваются предыдущие дни
    """

    def __init__(self, source: SourceDescriptor,
                 config: Optional[ParserConfig] = None,
                 session: Optional[requests.Session] = None,
                 today: Optional[Callable[[], date]] = None):
        super().__init__(source, config=config, session=session)
        self._today = today or date.today

    def build_url(self, day: date) -> str:
        """URL запроса котировки за день (формат даты MM-DD-YYYY)"""
        date_str = day.strftime("%m-%d-%Y")
        return f"{self.source.url}?@dataCotacao='{date_str}'&$top=1&$format=json"

    def fetch(self) -> RateSample:
        day = self._today()

        for _ in range(self.config.PTAX_LOOKBACK_DAYS + 1):
            data = self._json(self._make_request(self.build_url(day)))
            values = data.get("value") if isinstance(data, dict) else None

            if values:
                quote = values[-1]
                rate = self._validate(_to_float(quote.get("cotacaoVenda")))
                logger.debug(f"Курс PTAX за {day.isoformat()}: {rate}")
                return self._sample(rate)

            logger.debug(f"PTAX: нет котировки за {day.isoformat()}, пробуем предыдущий день")
            day -= timedelta(days=1)

        raise SourceUnavailableError(
            self.source.name,
            f"нет котировки за последние {self.config.PTAX_LOOKBACK_DAYS + 1} дней"
        )


@register_fetcher("browser")
class PageScrapeFetcher(BaseRateFetcher):
    """
    Клиент для страницы котировки (Google Finance и аналоги).
    Страница загружается целиком и разбирается через BeautifulSoup
    """

    def _user_agent(self) -> str:
        return self.config.BROWSER_USER_AGENT

    def fetch(self) -> RateSample:
        response = self._make_request(self.source.url, accept="text/html")
        return self.parse_page(response.text)

    def parse_page(self, html: str) -> RateSample:
        soup = BeautifulSoup(html, "html.parser")

        price_selector = self.source.selectors.get("price")
        if not price_selector:
            raise ValueError(f"Источник {self.source.name}: не задан selectors.price")

        price_element = soup.select_one(price_selector)
        if price_element is None:
            raise ParseError(f"элемент {price_selector} не найден")

        price_text = price_element.get_text(strip=True)
        logger.debug(f"Текст курса: '{price_text}'")

        rate = self._validate(parse_rate_text(price_text))
        return self._sample(rate, self._variation(soup))

    def _variation(self, soup: BeautifulSoup) -> Variation:
        """Изменение курса со страницы, ошибки не прерывают получение курса"""
        try:
            container_selector = self.source.selectors.get("container")
            container = soup.select_one(container_selector) if container_selector else soup
            if container is None:
                logger.debug("Контейнер изменения курса не найден")
                return stable_variation()

            percent = self._find_percent(container)
            change = self._find_change(container)
            hint = self._find_direction_hint(container) if change is None else None

            return Variation(
                percent=percent,
                absolute_change=change or 0.0,
                direction=infer_direction(change, hint),
            )

        except Exception as e:
            logger.debug(f"Ошибка при получении изменения курса: {e}")
            return stable_variation()

    def _find_percent(self, container) -> str:
        selector = self.source.selectors.get("percent")
        element = container.select_one(selector) if selector else None
        if element is None:
            return "0.00%"
        return clean_percent_text(element.get_text(strip=True))

    def _find_change(self, container) -> Optional[float]:
        candidates = self.source.selectors.get("change", "")

        for selector in (s.strip() for s in candidates.split(",")):
            if not selector:
                continue
            element = container.select_one(selector)
            if element is None:
                continue

            text = element.get_text(strip=True)
            logger.debug(f"Селектор '{selector}': '{text}'")
            change = parse_change_text(text)
            if change is not None:
                return change

        return None

    def _find_direction_hint(self, container) -> Optional[str]:
        selector = self.source.selectors.get("direction")
        element = container.select_one(selector) if selector else None
        if element is None:
            return None
        return element.get("aria-label")
