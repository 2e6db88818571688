import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Pin the environment so settings never pick up production behaviour, and
    activate the ordering domain by pushing its domain_context for the whole
    session.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ.setdefault("ENVIRONMENT", "test")
    os.environ.setdefault("STORE_BACKEND", "memory")

    from ordering.domain import ordering

    ordering.init()
    ordering.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        # Get the test file path relative to the tests directory
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


# ---------------------------------------------------------------------------
# Shared fakes and services
# ---------------------------------------------------------------------------
class FakeBrowserPage:
    def __init__(self, browser):
        self.browser = browser
        self.content = None

    async def set_content(self, html, wait_until=None):
        self.content = html
        self.browser.calls.append(("set_content", wait_until))

    async def evaluate(self, _script):
        if self.browser.fail_on == "evaluate":
            raise RuntimeError("page crashed")
        return {"width": "800", "height": "1070"}

    async def set_viewport_size(self, size):
        self.browser.calls.append(("set_viewport_size", size))

    async def pdf(self, **options):
        self.browser.calls.append(("pdf", options))
        return b"%PDF-1.4 fake receipt"


class FakeBrowser:
    """Stands in for a Playwright browser; counts closes."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []
        self.closed = 0
        self.page = None

    async def new_page(self, **options):
        self.calls.append(("new_page", options))
        self.page = FakeBrowserPage(self)
        return self.page

    async def close(self):
        self.closed += 1


@pytest.fixture()
def fake_browser():
    return FakeBrowser()


@pytest.fixture()
def converter(fake_browser):
    from contextlib import asynccontextmanager

    from notifications.receipt.pdf import ReceiptPdfConverter

    @asynccontextmanager
    async def launcher():
        yield fake_browser

    return ReceiptPdfConverter(launcher=launcher)


@pytest.fixture()
def settings():
    from shared.settings import Settings

    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        STORE_BACKEND="memory",
        FRONTEND_URL="https://shop.example.com",
    )


@pytest.fixture()
def store():
    from ordering.store.memory_adapter import InMemoryOrderStore

    return InMemoryOrderStore()


@pytest.fixture()
def gateway():
    from payments.gateway.fake_adapter import FakeGateway

    return FakeGateway()


@pytest.fixture()
def email():
    from notifications.channel.fake_email import FakeEmailAdapter

    return FakeEmailAdapter()


@pytest.fixture()
def services(settings, store, gateway, email, converter):
    from container import assemble_services

    return assemble_services(settings, store=store, gateway=gateway, email=email, converter=converter)


@pytest.fixture()
def lifecycle(services):
    return services.lifecycle


@pytest.fixture()
def jobs(services):
    return services.jobs


@pytest.fixture()
async def client(services):
    """HTTP client bound to an app built from the fake services."""
    import httpx
    from app import create_app

    app = create_app(services=services)
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
