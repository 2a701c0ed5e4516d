"""Unit tests for the quote state machine and lazy expiry."""
from datetime import datetime, timedelta

import pytest

from marketplace.models import QuoteRequest, QuoteStatus, effective_status
from marketplace.services.quote_service import TRANSITIONS, can_apply, counterpart

NOW = datetime(2026, 6, 1, 12, 0, 0)


class TestEffectiveStatus:

    @pytest.mark.parametrize('status', ['pending', 'responded', 'countered'])
    def test_open_quote_past_expiry_reads_expired(self, status):
        assert effective_status(status, NOW - timedelta(seconds=1), NOW) == 'expired'

    @pytest.mark.parametrize('status', ['pending', 'responded', 'countered'])
    def test_open_quote_before_expiry_keeps_status(self, status):
        assert effective_status(status, NOW + timedelta(days=1), NOW) == status

    def test_expiry_boundary_is_exclusive(self):
        assert effective_status('pending', NOW, NOW) == 'pending'

    @pytest.mark.parametrize('status', ['accepted', 'rejected', 'cancelled'])
    def test_terminal_status_never_expires(self, status):
        assert effective_status(status, NOW - timedelta(days=30), NOW) == status

    def test_no_expiry(self):
        assert effective_status('responded', None, NOW) == 'responded'

    def test_model_does_not_write_expired_back(self):
        quote = QuoteRequest(status='pending', expires_at=NOW - timedelta(hours=1))
        assert quote.effective_status(NOW) == 'expired'
        assert quote.status == 'pending'


class TestTransitions:

    def test_every_action_targets_a_known_status(self):
        statuses = {s.value for s in QuoteStatus}
        for allowed_from, parties, result in TRANSITIONS.values():
            assert allowed_from <= statuses
            assert result in statuses
            assert parties <= {'supplier', 'company'}

    @pytest.mark.parametrize('action,status,expected', [
        ('respond', 'pending', True),
        ('respond', 'responded', False),
        ('counter', 'responded', True),
        ('counter', 'countered', True),
        ('accept', 'pending', False),
        ('accept', 'countered', True),
        ('reject', 'pending', True),
        ('cancel', 'responded', False),
        ('reject', 'expired', False),
        ('accept', 'accepted', False),
    ])
    def test_can_apply(self, action, status, expected):
        assert can_apply(action, status) is expected

    def test_terminal_statuses_allow_nothing(self):
        for status in ('accepted', 'rejected', 'cancelled', 'expired'):
            assert not any(can_apply(action, status) for action in TRANSITIONS)

    def test_only_supplier_responds_and_only_company_cancels(self):
        assert TRANSITIONS['respond'][1] == {'supplier'}
        assert TRANSITIONS['cancel'][1] == {'company'}

    def test_counterpart(self):
        assert counterpart('supplier') == 'company'
        assert counterpart('company') == 'supplier'
