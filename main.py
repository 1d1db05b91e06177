#!/usr/bin/env python3
# main.py
"""
Точка входа релея позиций скорых.
Запускает сервер релея или консольного зрителя в зависимости от аргумента.
"""

from __future__ import annotations

import asyncio
import sys

from src.config import settings
from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info, setup_logging


VALID_MODES = ("relay", "viewer")


async def run_relay() -> None:
    """Запускает HTTP/WebSocket сервер релея."""
    import uvicorn

    await log_info(
        f"Запуск релея на {settings.server.HOST}:{settings.server.PORT}...",
        type_msg=TypeMsg.INFO
    )

    config = uvicorn.Config(
        "src.services.relay.app:app",
        host=settings.server.HOST,
        port=settings.server.PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Релей: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_viewer(url: str | None = None) -> None:
    """Подключает консольного зрителя к релею и выводит прибытия к диспансеру."""
    from src.client import ArrivalNotice, ClientSessionView
    from src.client.viewer import ViewerClient
    from src.core.geo import RoutingService

    url = url or f"ws://127.0.0.1:{settings.server.PORT}/ws"
    router = RoutingService() if settings.routing.ENABLED else None

    def on_arrival(notice: ArrivalNotice) -> None:
        print(f"Ambulance {notice.number} has arrived at the dispensary!")

    dispensary = settings.dispensary
    view = ClientSessionView(
        dispensary.LATITUDE,
        dispensary.LONGITUDE,
        dispensary.PROXIMITY_THRESHOLD_METERS,
        router=router,
        on_arrival=on_arrival,
    )

    await log_info(f"Запуск зрителя: {url}", type_msg=TypeMsg.INFO)
    try:
        await ViewerClient(url, view).run()
    finally:
        if router is not None:
            await router.close()


async def main(mode: str = "relay", url: str | None = None) -> None:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска (relay, viewer)
        url: Адрес WebSocket релея для зрителя
    """
    setup_logging()

    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION} — запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO
    )

    try:
        if mode == "relay":
            await run_relay()
        elif mode == "viewer":
            await run_viewer(url)
        else:
            await log_error(f"Неизвестный режим: {mode}")
    except asyncio.CancelledError:
        await log_info("Задача отменена, выполняется graceful shutdown", type_msg=TypeMsg.INFO)
    finally:
        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print("""
Ambulance Relay — рассылка позиций скорых в реальном времени

Использование:
    python main.py [mode] [url]

Режимы:
    relay      — HTTP/WebSocket сервер (по умолчанию, порт 9090)
    viewer     — консольный зритель, подключается к релею по WebSocket

Примеры:
    python main.py
    python main.py viewer ws://relay.local:9090/ws
    """)


if __name__ == "__main__":
    mode = "relay"
    url = None

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in VALID_MODES:
            mode = arg
        else:
            print(f"Неизвестный режим: {arg}")
            print_usage()
            sys.exit(1)
    if len(sys.argv) > 2:
        url = sys.argv[2]

    try:
        asyncio.run(main(mode, url))
    except KeyboardInterrupt:
        pass
