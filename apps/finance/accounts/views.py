import json
from decimal import InvalidOperation

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_GET, require_POST

from apps.core.users.audit import log_audit_event
from apps.core.users.decorators import role_required
from apps.core.users.models import AuditLog, User

from .backfill import run_backfill
from .exceptions import ConfigurationError, LedgerError
from .models import JournalEntry
from .posting import record_manual_entry, reverse_journal_entry
from .registry import get_account
from .statements import (
    account_ledger,
    balance_sheet,
    cash_flow_statement,
    general_ledger,
    income_statement,
    trial_balance,
)


class _BadRequest(ValueError):
    pass


def _date_param(request, name, default=None):
    raw_value = request.GET.get(name, '').strip()
    if not raw_value:
        return default
    try:
        value = parse_date(raw_value)
    except ValueError:
        value = None
    if value is None:
        raise _BadRequest(f'Invalid {name}: expected YYYY-MM-DD.')
    return value


def _bad_request(exc):
    return JsonResponse({'error': str(exc)}, status=400)


def _year_start(day):
    return day.replace(month=1, day=1)


@login_required
@role_required(User.FINANCE_ROLES)
@require_GET
def trial_balance_view(request):
    try:
        as_of = _date_param(request, 'as_of', timezone.localdate())
    except _BadRequest as exc:
        return _bad_request(exc)
    return JsonResponse(trial_balance(request.current_school, as_of).as_dict())


@login_required
@role_required(User.FINANCE_ROLES)
@require_GET
def income_statement_view(request):
    today = timezone.localdate()
    try:
        end = _date_param(request, 'to', today)
        start = _date_param(request, 'from', _year_start(end))
    except _BadRequest as exc:
        return _bad_request(exc)
    if start > end:
        return JsonResponse({'error': 'from must be on or before to.'}, status=400)
    return JsonResponse(income_statement(request.current_school, start, end).as_dict())


@login_required
@role_required(User.FINANCE_ROLES)
@require_GET
def balance_sheet_view(request):
    try:
        as_of = _date_param(request, 'as_of', timezone.localdate())
        period_start = _date_param(request, 'period_start')
    except _BadRequest as exc:
        return _bad_request(exc)
    if period_start and period_start > as_of:
        return JsonResponse({'error': 'period_start must be on or before as_of.'}, status=400)
    return JsonResponse(balance_sheet(request.current_school, as_of, period_start).as_dict())


@login_required
@role_required(User.FINANCE_ROLES)
@require_GET
def cash_flow_statement_view(request):
    today = timezone.localdate()
    try:
        end = _date_param(request, 'to', today)
        start = _date_param(request, 'from', _year_start(end))
    except _BadRequest as exc:
        return _bad_request(exc)
    if start > end:
        return JsonResponse({'error': 'from must be on or before to.'}, status=400)
    return JsonResponse(cash_flow_statement(request.current_school, start, end).as_dict())


@login_required
@role_required(User.FINANCE_ROLES)
@require_GET
def account_ledger_view(request, account_id):
    school = request.current_school
    account = get_account(school, account_id)
    if account is None:
        return JsonResponse({'error': 'Account not found.'}, status=404)

    today = timezone.localdate()
    try:
        end = _date_param(request, 'to', today)
        start = _date_param(request, 'from', _year_start(end))
    except _BadRequest as exc:
        return _bad_request(exc)
    if start > end:
        return JsonResponse({'error': 'from must be on or before to.'}, status=400)
    return JsonResponse(account_ledger(school, account, start, end).as_dict())


@login_required
@role_required(User.FINANCE_ROLES)
@require_POST
def backfill_view(request):
    school = request.current_school
    report = run_backfill(school, posted_by=request.user)
    log_audit_event(
        request,
        action=AuditLog.ACTION_LEDGER_BACKFILL,
        school=school,
        details=report.summary,
    )
    return JsonResponse(report.as_dict())


@login_required
@role_required(User.FINANCE_ROLES)
@require_GET
def general_ledger_view(request):
    today = timezone.localdate()
    try:
        end = _date_param(request, 'to', today)
        start = _date_param(request, 'from', _year_start(end))
    except _BadRequest as exc:
        return _bad_request(exc)
    if start > end:
        return JsonResponse({'error': 'from must be on or before to.'}, status=400)
    source_type = request.GET.get('source_type', '').strip() or None
    return JsonResponse(general_ledger(request.current_school, start, end, source_type).as_dict())


def _json_body(request):
    try:
        payload = json.loads(request.body or b'{}')
    except ValueError:
        raise _BadRequest('Request body must be valid JSON.') from None
    if not isinstance(payload, dict):
        raise _BadRequest('Request body must be a JSON object.')
    return payload


def _body_date(payload, name, default=None):
    raw_value = str(payload.get(name) or '').strip()
    if not raw_value:
        return default
    try:
        value = parse_date(raw_value)
    except ValueError:
        value = None
    if value is None:
        raise _BadRequest(f'Invalid {name}: expected YYYY-MM-DD.')
    return value


def _ledger_error(exc):
    body = {'error': str(exc)}
    if isinstance(exc, ConfigurationError):
        body['missing_mapping'] = exc.missing_mapping
    return JsonResponse(body, status=400)


@login_required
@role_required(User.FINANCE_ROLES)
@require_POST
def manual_entry_view(request):
    school = request.current_school
    try:
        payload = _json_body(request)
        entry_date = _body_date(payload, 'date', timezone.localdate())
    except _BadRequest as exc:
        return _bad_request(exc)

    description = str(payload.get('description') or '').strip()
    lines = payload.get('lines')
    if not description:
        return JsonResponse({'error': 'description is required.'}, status=400)
    if not isinstance(lines, list) or not all(isinstance(line, dict) and 'account_id' in line for line in lines):
        return JsonResponse({'error': 'lines must be a list of objects with account_id.'}, status=400)

    try:
        entry = record_manual_entry(
            school,
            date=entry_date,
            description=description,
            lines=lines,
            posted_by=request.user,
        )
    except LedgerError as exc:
        return _ledger_error(exc)
    except (InvalidOperation, TypeError, ValueError):
        return JsonResponse({'error': 'Line amounts must be numbers.'}, status=400)

    log_audit_event(
        request,
        action=AuditLog.ACTION_MANUAL_JOURNAL_ENTRY,
        school=school,
        target=entry,
        details=description,
    )
    return JsonResponse({'entry_id': entry.id}, status=201)


@login_required
@role_required(User.FINANCE_ROLES)
@require_POST
def reverse_entry_view(request, entry_id):
    school = request.current_school
    entry = JournalEntry.objects.for_school(school).filter(pk=entry_id).first()
    if entry is None:
        return JsonResponse({'error': 'Journal entry not found.'}, status=404)
    try:
        payload = _json_body(request)
        reversal_date = _body_date(payload, 'date')
    except _BadRequest as exc:
        return _bad_request(exc)

    reason = str(payload.get('reason') or '').strip()
    try:
        reversal = reverse_journal_entry(entry, posted_by=request.user, reason=reason, date=reversal_date)
    except LedgerError as exc:
        return _ledger_error(exc)

    log_audit_event(
        request,
        action=AuditLog.ACTION_JOURNAL_REVERSAL,
        school=school,
        target=entry,
        details=reason,
    )
    return JsonResponse({'entry_id': reversal.id, 'reverses': entry.id}, status=201)
