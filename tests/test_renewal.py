from __future__ import annotations

import threading

import pytest

from sitelist.scraper.errors import RenewalFailed
from sitelist.scraper.jobs import Credentials
from sitelist.scraper.renewal import RenewalCoordinator


def _renew(current: Credentials) -> Credentials:
    return current.renewed({"PHPSESSID": "fresh"})


def test_renew_returns_newer_credentials():
    coordinator = RenewalCoordinator(_renew, timeout_seconds=5, max_renewals=3)
    current = Credentials.from_mapping({"PHPSESSID": "old", "s2_uLang": "en"}, proxy_url="http://p:1")

    fresh = coordinator.renew(current, page=4)

    assert fresh.version == 2
    assert fresh.cookie_dict() == {"PHPSESSID": "fresh", "s2_uLang": "en"}
    assert fresh.proxy_url == "http://p:1"
    assert current.cookie_dict()["PHPSESSID"] == "old"
    assert coordinator.renewals == 1


def test_version_is_bumped_when_renew_fn_keeps_it():
    coordinator = RenewalCoordinator(lambda current: current, timeout_seconds=5)
    current = Credentials(version=4)

    assert coordinator.renew(current).version == 5


def test_renewals_are_bounded():
    coordinator = RenewalCoordinator(_renew, timeout_seconds=5, max_renewals=2)
    credentials = Credentials()
    credentials = coordinator.renew(credentials)
    credentials = coordinator.renew(credentials)

    with pytest.raises(RenewalFailed, match=r"exhausted \(2/2\)"):
        coordinator.renew(credentials, page=9)


def test_timeout_calls_cancel_hook():
    release = threading.Event()

    class SlowRenewer:
        cancelled = False

        def __call__(self, current: Credentials) -> Credentials:
            release.wait(timeout=5)
            return current

        def cancel(self) -> None:
            SlowRenewer.cancelled = True
            release.set()

    coordinator = RenewalCoordinator(SlowRenewer(), timeout_seconds=0.05)

    with pytest.raises(RenewalFailed, match="timed out after 0.05s") as excinfo:
        coordinator.renew(Credentials(), page=2)

    assert excinfo.value.page == 2
    assert SlowRenewer.cancelled is True


def test_renew_fn_errors_are_wrapped():
    def broken(current: Credentials) -> Credentials:
        raise ConnectionError("captcha host unreachable")

    coordinator = RenewalCoordinator(broken, timeout_seconds=5)

    with pytest.raises(RenewalFailed, match="captcha host unreachable") as excinfo:
        coordinator.renew(Credentials(), page=1)

    assert isinstance(excinfo.value.__cause__, ConnectionError)


def test_renewal_failed_passes_through():
    def rejected(current: Credentials) -> Credentials:
        raise RenewalFailed("no captcha response provided")

    coordinator = RenewalCoordinator(rejected, timeout_seconds=5)

    with pytest.raises(RenewalFailed, match="^no captcha response provided$"):
        coordinator.renew(Credentials())


def test_non_credentials_result_fails():
    coordinator = RenewalCoordinator(lambda current: None, timeout_seconds=5)

    with pytest.raises(RenewalFailed, match="no credentials"):
        coordinator.renew(Credentials())
