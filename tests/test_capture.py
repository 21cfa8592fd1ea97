"""Tests for the capture state machine and the per-viewport capture protocol."""

import json
from unittest.mock import MagicMock

import pytest
from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from shooter import (
    CaptureConfig,
    CaptureState,
    CaptureTask,
    StabilityResult,
    VIEWPORTS,
    capture_page,
    next_state,
)
from shooter.artifacts import write_capture_logs, read_capture_logs
from shooter.capture import fast_probe_params, settle_probe_params


OK = StabilityResult(ok=True, height=100, pending_images=0, dom_nodes=10)
TIMEOUT = StabilityResult(ok=False, reason='timeout')


@pytest.fixture
def task(tmp_path):
    return CaptureTask(
        url='https://example.com/products/',
        viewport=VIEWPORTS[0],
        page_name='products',
        domain='example.com',
        screenshot_path=tmp_path / 'products' / 'mobile.png',
    )


class TestNextState:
    """Tests for the single transition function."""

    def test_probe_success_is_stable(self):
        assert next_state(CaptureState.PROBING, OK, True) is CaptureState.STABLE

    def test_probe_failure_sweeps(self):
        assert next_state(CaptureState.PROBING, TIMEOUT, True) is CaptureState.SWEEPING

    def test_probe_failure_without_sweep_settles(self):
        assert next_state(CaptureState.PROBING, TIMEOUT, False) is CaptureState.SETTLING

    def test_sweep_always_settles(self):
        assert next_state(CaptureState.SWEEPING, TIMEOUT, True) is CaptureState.SETTLING

    def test_settle_outcomes(self):
        assert next_state(CaptureState.SETTLING, OK, True) is CaptureState.STABLE
        assert next_state(CaptureState.SETTLING, TIMEOUT, True) is CaptureState.UNSTABLE

    @pytest.mark.parametrize('state', [CaptureState.STABLE, CaptureState.UNSTABLE])
    def test_terminal_states_have_no_transition(self, state):
        with pytest.raises(ValueError):
            next_state(state, OK, True)


class TestProbeParams:
    """Tests for the fast and settle probe parameters."""

    def test_fast_probe_halves_iterations(self):
        config = CaptureConfig(stable_iterations=10, fast_stabilize_ms=4000)
        params = fast_probe_params(config)

        assert params.stable_iterations == 5
        assert params.timeout_ms == 4000

    def test_fast_probe_has_a_floor(self):
        assert fast_probe_params(CaptureConfig(stable_iterations=4)).stable_iterations == 3

    def test_settle_probe_uses_short_window(self):
        config = CaptureConfig(fast_stabilize_ms=5000, settle_timeout_ms=2500, settle_iterations=3)
        params = settle_probe_params(config)

        assert params.timeout_ms == 2500
        assert params.stable_iterations == 3


class TestCapturePage:
    """Tests for the full capture protocol against a mocked page."""

    def test_stable_page(self, fake_page, fast_config, task):
        """A settled page is captured after a single probe."""
        page = fake_page()

        outcome = capture_page(page, task, fast_config)

        assert outcome.stability.ok is True
        assert outcome.states == ['probing', 'stable']
        assert outcome.diagnostics == []
        assert outcome.screenshot_path == task.screenshot_path
        page.screenshot.assert_called_once_with(path=str(task.screenshot_path), full_page=True)
        page.goto.assert_called_once_with(
            task.url, wait_until=fast_config.wait_until, timeout=fast_config.navigation_timeout_ms
        )

    def test_unstable_page_sweeps_then_settles(self, fake_page, fast_config, task):
        """A never-quiet page falls through sweep and settle and is still captured."""
        page = fake_page(heights=lambda n: 1000 + n * 40)

        outcome = capture_page(page, task, fast_config)

        assert outcome.stability.ok is False
        assert outcome.states == ['probing', 'sweeping', 'settling', 'unstable']
        page.screenshot.assert_called_once()
        scrolls = [c for c in page.evaluate.call_args_list if 'scrollTo' in c.args[0]]
        assert len(scrolls) == fast_config.sweep_steps + 2

    def test_sweep_disabled_goes_straight_to_settle(self, fake_page, fast_config, task):
        """With sweeping off the settle probe still runs."""
        fast_config.sweep = False
        page = fake_page(heights=lambda n: 1000 + n * 40)

        outcome = capture_page(page, task, fast_config)

        assert outcome.states == ['probing', 'settling', 'unstable']
        assert not [c for c in page.evaluate.call_args_list if 'scrollTo' in c.args[0]]

    def test_page_that_settles_after_sweep(self, fake_page, fast_config, task):
        """Lazy content that stops changing once swept ends stable."""
        state = {'swept': False}
        page = fake_page()
        original = page.evaluate.side_effect

        def _evaluate(script, *args):
            if 'scrollTo' in script:
                state['swept'] = True
            if 'pendingImages' in script and not state['swept']:
                result = original(script, *args)
                result['height'] += page.samples['n'] * 40
                return result
            return original(script, *args)

        page.evaluate.side_effect = _evaluate

        outcome = capture_page(page, task, fast_config)

        assert outcome.states == ['probing', 'sweeping', 'settling', 'stable']
        assert outcome.stability.ok is True

    def test_navigation_failure_is_a_diagnostic(self, fake_page, fast_config, task):
        """A failed goto is recorded and the capture carries on."""
        page = fake_page()
        page.goto.side_effect = PlaywrightTimeout('Timeout 60000ms exceeded')

        outcome = capture_page(page, task, fast_config)

        assert outcome.diagnostics[0].startswith('NAV_FAIL: ')
        page.screenshot.assert_called_once()

    def test_crashed_page_propagates(self, fake_page, fast_config, task):
        """A closed page is an infrastructure failure."""
        page = fake_page()
        page.goto.side_effect = PlaywrightError('Target page, context or browser has been closed')
        page.is_closed.return_value = True

        with pytest.raises(PlaywrightError):
            capture_page(page, task, fast_config)

    def test_missing_selector_is_recorded(self, fake_page, fast_config, task):
        """A must-contain selector that never attaches becomes a diagnostic."""
        fast_config.wait_for_selector = '.hero'
        page = fake_page()
        page.wait_for_selector.side_effect = PlaywrightTimeout('Timeout 50ms exceeded')

        outcome = capture_page(page, task, fast_config)

        assert outcome.selector_found is False
        assert any(d.startswith('SELECTOR_MISSING: .hero') for d in outcome.diagnostics)
        page.screenshot.assert_called_once()

    def test_selector_not_configured(self, fake_page, fast_config, task):
        page = fake_page()

        outcome = capture_page(page, task, fast_config)

        assert outcome.selector_found is None
        page.wait_for_selector.assert_not_called()

    def test_screenshot_failure_is_a_diagnostic(self, fake_page, fast_config, task):
        page = fake_page()
        page.screenshot.side_effect = PlaywrightError('Cannot take screenshot larger than 32767 pixels')

        outcome = capture_page(page, task, fast_config)

        assert outcome.screenshot_path is None
        assert outcome.diagnostics[-1].startswith('SCREENSHOT_FAIL: ')

    def test_consent_dismissal_can_be_disabled(self, fake_page, fast_config, task):
        fast_config.dismiss_popups = False
        page = fake_page()

        outcome = capture_page(page, task, fast_config)

        assert outcome.consent_dismissed is False
        page.query_selector.assert_not_called()

    def test_console_and_request_failures_are_collected(self, fake_page, fast_config, task):
        """Event handlers registered on the page feed the outcome."""
        page = fake_page()

        outcome = capture_page(page, task, fast_config)
        handlers = {c.args[0]: c.args[1] for c in page.on.call_args_list}

        handlers['console'](MagicMock(type='error', text='Uncaught TypeError: x is undefined'))
        handlers['console'](MagicMock(type='log', text='hello'))
        request = MagicMock(method='GET', url='https://cdn.example.com/a.js', failure='net::ERR_ABORTED')
        handlers['requestfailed'](request)

        assert outcome.console_errors == ['Uncaught TypeError: x is undefined']
        assert outcome.request_failures == ['GET https://cdn.example.com/a.js :: net::ERR_ABORTED']


class TestCaptureLogs:
    """Tests for persisting capture diagnostics."""

    def test_logs_round_trip(self, fake_page, fast_config, task, tmp_path):
        """Console errors, request failures and the stability record are written."""
        page = fake_page()
        page.goto.side_effect = PlaywrightTimeout('Timeout')
        outcome = capture_page(page, task, fast_config)
        outcome.request_failures.append('GET https://x.example/a.png :: net::ERR_FAILED')

        write_capture_logs(tmp_path / 'logs', outcome, fast_config, 'RUN')
        logs = read_capture_logs(tmp_path, 'products', 'mobile')

        assert logs['console_errors'][0].startswith('NAV_FAIL')
        assert logs['request_failures'] == ['GET https://x.example/a.png :: net::ERR_FAILED']
        record = logs['stability']
        assert record['url'] == task.url
        assert record['viewport'] == {'name': 'mobile', 'width': 390, 'height': 844}
        assert record['run_timestamp'] == 'RUN'
        assert record['options']['sweep_steps'] == fast_config.sweep_steps
        assert record['stability']['ok'] is True
        assert record['states'] == ['probing', 'stable']

    def test_clean_capture_writes_only_stability(self, fake_page, fast_config, task, tmp_path):
        """Empty diagnostics do not produce empty text files."""
        outcome = capture_page(fake_page(), task, fast_config)

        write_capture_logs(tmp_path / 'logs', outcome, fast_config, 'RUN')

        names = sorted(p.name for p in (tmp_path / 'logs').iterdir())
        assert names == ['products__mobile__stability.json']
        json.loads((tmp_path / 'logs' / names[0]).read_text())
