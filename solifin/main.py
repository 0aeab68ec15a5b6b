"""
SOLIFIN command line - fee previews, transfers, withdrawals and admin review
"""

import argparse
import asyncio
import getpass
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from solifin.api.client import APIClient
from solifin.config import config
from solifin.flows.base import PaymentFlow
from solifin.flows.transfer import TransferFlow
from solifin.flows.withdrawal import WithdrawalFlow
from solifin.models.enums import Currency, FeeKind, PaymentType
from solifin.services.fee_calculator import calculate_with_schedule
from solifin.services.fee_resolver import FeeResolver
from solifin.services.referral_stats import ReferralStatsService, summarize_generations
from solifin.services.withdrawals import WithdrawalReviewService
from solifin.utils.decorators import handle_api_errors
from solifin.utils.formatting import format_currency, format_percentage, format_table, truncate_string
from solifin.utils.payment_methods import format_payment_method_display, get_payment_method

logger = logging.getLogger(__name__)

FEE_KINDS = {
    "transfer": FeeKind.TRANSFER,
    "withdrawal": FeeKind.WITHDRAWAL,
    "pack": FeeKind.PACK_PURCHASE,
    "virtual": FeeKind.VIRTUAL_PURCHASE,
}


def configure_logging():
    """Configure logging with rotation"""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            RotatingFileHandler(
                'solifin.log',
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
        ]
    )


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="solifin",
        description="SOLIFIN wallet client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s fees transfer --amount 100
  %(prog)s transfer --to SOL123 --amount 50 --note "Rent"
  %(prog)s withdraw --wallet 4 --amount 20 --method orange-money --phone 812345678
  %(prog)s withdrawals pending --status pending
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Fees
    fees_parser = subparsers.add_parser('fees', help='Show the fee schedule of a flow')
    fees_parser.add_argument('kind', choices=sorted(FEE_KINDS))
    fees_parser.add_argument('--amount', help='Also show the breakdown for this amount')

    # Balance
    subparsers.add_parser('balance', help='Show wallet balance')

    # Transfer
    transfer_parser = subparsers.add_parser('transfer', help='Transfer funds to SOLIFIN accounts')
    transfer_parser.add_argument(
        '--to', dest='recipients', action='append', required=True,
        help='Recipient account ID (repeat with --amount for several recipients)'
    )
    transfer_parser.add_argument(
        '--amount', dest='amounts', action='append', required=True,
        help='Amount for the matching --to'
    )
    transfer_parser.add_argument('--note', default='', help='Note shown to the recipient')
    transfer_parser.add_argument('--sender', default=os.getenv('SOLIFIN_ACCOUNT_ID'),
                                 help='Your own account ID (default: $SOLIFIN_ACCOUNT_ID)')
    _add_currency(transfer_parser)
    _add_yes(transfer_parser)

    # Withdraw
    withdraw_parser = subparsers.add_parser('withdraw', help='Request a withdrawal')
    withdraw_parser.add_argument('--wallet', type=int, required=True, help='Wallet ID')
    withdraw_parser.add_argument('--amount', required=True)
    withdraw_parser.add_argument('--method', required=True,
                                 help='orange-money, m-pesa, afrimoney, airtel-money, visa, mastercard...')
    withdraw_parser.add_argument('--phone', help='Phone number (mobile money)')
    withdraw_parser.add_argument('--phone-code', default='+243')
    withdraw_parser.add_argument('--country', default='CD')
    withdraw_parser.add_argument('--account-number', help='Card account number')
    withdraw_parser.add_argument('--account-name', help='Card account holder')
    _add_currency(withdraw_parser)
    _add_yes(withdraw_parser)

    # Withdrawal review
    review_parser = subparsers.add_parser('withdrawals', help='Review withdrawal requests')
    review_sub = review_parser.add_subparsers(dest='action', required=True)
    for name, help_text in (('pending', 'List pending requests'), ('all', 'List all requests')):
        list_parser = review_sub.add_parser(name, help=help_text)
        list_parser.add_argument('--page', type=int, default=1)
        list_parser.add_argument('--per-page', type=int, default=None)
        list_parser.add_argument('--status')
        list_parser.add_argument('--method', dest='payment_method')
        list_parser.add_argument('--search')
        list_parser.add_argument('--start-date')
        list_parser.add_argument('--end-date')
    for name in ('approve', 'reject'):
        action_parser = review_sub.add_parser(name, help=f'{name.title()} a request')
        action_parser.add_argument('id', type=int)
        action_parser.add_argument('--note', help='Admin note (500 characters max)')
    for name in ('cancel', 'delete'):
        action_parser = review_sub.add_parser(name, help=f'{name.title()} a request')
        action_parser.add_argument('id', type=int)

    # Pack stats
    stats_parser = subparsers.add_parser('pack-stats', help='Referral statistics of a pack')
    stats_parser.add_argument('pack_id', type=int)

    return parser


def _add_currency(parser: argparse.ArgumentParser):
    parser.add_argument('--currency', default='USD', choices=[c.value for c in Currency])


def _add_yes(parser: argparse.ArgumentParser):
    parser.add_argument('--yes', '-y', action='store_true',
                        help='Skip the confirmation prompt (password from $SOLIFIN_PASSWORD)')


# =======================
# Commands
# =======================

@handle_api_errors()
async def cmd_fees(api, args) -> int:
    resolver = FeeResolver.from_config(api, config)
    schedule = await resolver.resolve(FEE_KINDS[args.kind])

    rows = [
        ("Fee", format_percentage(schedule.fee_percentage, 2)),
        ("Commission", format_percentage(schedule.commission_percentage, 2)),
    ]
    if schedule.degraded:
        rows.append(("Warning", "fee schedule unavailable, 0% applied"))
    if args.amount:
        breakdown = calculate_with_schedule(args.amount, schedule)
        rows += [
            ("Amount", format_currency(breakdown.amount)),
            ("Fee amount", format_currency(breakdown.fee)),
            ("Commission amount", format_currency(breakdown.commission)),
            ("Total", format_currency(breakdown.total)),
        ]
    print(format_table(rows))
    return 0


@handle_api_errors()
async def cmd_balance(api, args) -> int:
    balance = await api.get_wallet_balance()
    print(format_table([
        ("USD", format_currency(balance.balance_usd, Currency.USD)),
        ("CDF", format_currency(balance.balance_cdf, Currency.CDF)),
    ]))
    return 0


@handle_api_errors(show_details=True)
async def cmd_transfer(api, args) -> int:
    if len(args.recipients) != len(args.amounts):
        print("Error: every --to needs a matching --amount", file=sys.stderr)
        return 2

    flow = TransferFlow(
        api,
        FeeResolver.from_config(api, config),
        sender_account_id=args.sender,
        currency=Currency(args.currency),
        revalidate_on_submit=config.revalidate_on_submit
    )
    await flow.open()

    if len(args.recipients) == 1:
        flow.set_recipient(args.recipients[0], args.amounts[0])
    else:
        for account_id, amount in zip(args.recipients, args.amounts):
            flow.add_recipient(account_id, amount)
    flow.note = args.note

    return await confirm_and_submit(flow, args)


@handle_api_errors(show_details=True)
async def cmd_withdraw(api, args) -> int:
    flow = WithdrawalFlow(
        api,
        FeeResolver.from_config(api, config),
        wallet_id=args.wallet,
        currency=Currency(args.currency),
        revalidate_on_submit=config.revalidate_on_submit
    )
    await flow.open()

    method = flow.select_method(args.method)
    flow.set_amount(args.amount)
    if method.payment_type == PaymentType.MOBILE_MONEY:
        flow.set_mobile_money(args.phone or "", phone_code=args.phone_code, country=args.country)
    else:
        flow.set_card_account(args.account_number or "", args.account_name or "", country=args.country)

    return await confirm_and_submit(flow, args)


@handle_api_errors(show_details=True)
async def cmd_withdrawals(api, args) -> int:
    service = WithdrawalReviewService(api, per_page=config.per_page)

    if args.action in ('pending', 'all'):
        filters = {
            key: getattr(args, key)
            for key in ('status', 'payment_method', 'search', 'start_date', 'end_date')
            if getattr(args, key)
        }
        lister = service.list_pending if args.action == 'pending' else service.list_all
        page = await lister(page=args.page, per_page=args.per_page, filters=filters)

        if not page.items:
            print("No withdrawal requests")
            return 0
        for record in page.items:
            user = (record.user or {}).get("name", record.user_id)
            print(
                f"#{record.id:<6} {record.status.value:<10} "
                f"{format_currency(record.amount, record.currency):>16}  "
                f"{format_payment_method_display(record.payment_method or ''):<16} "
                f"{truncate_string(str(user or ''), 24)}"
            )
        print(f"Page {page.current_page}/{page.last_page} ({page.total} requests)")
        return 0

    if args.action == 'approve':
        result = await service.approve(args.id, admin_note=args.note)
    elif args.action == 'reject':
        result = await service.reject(args.id, admin_note=args.note)
    elif args.action == 'cancel':
        result = await service.cancel(args.id)
    else:
        result = await service.delete(args.id)

    print(result.get("message") or f"Request {args.id}: {args.action} done")
    return 0


@handle_api_errors()
async def cmd_pack_stats(api, args) -> int:
    service = ReferralStatsService(api)
    stats = await service.get_pack_stats(args.pack_id)
    general = stats.general_stats

    rows = [
        ("Referrals", str(general.total_referrals)),
        ("Active", str(general.active_referrals)),
        ("Inactive", str(general.inactive_referrals)),
        ("Commission (USD)", format_currency(general.total_commission_usd, Currency.USD)),
        ("Commission (CDF)", format_currency(general.total_commission_cdf, Currency.CDF)),
        ("Best generation", str(general.best_generation)),
    ]
    for summary in summarize_generations(stats):
        rows.append((
            f"Generation {summary.generation}",
            f"{summary.referrals} referrals, "
            f"{format_currency(summary.commission_usd, Currency.USD)} / "
            f"{format_currency(summary.commission_cdf, Currency.CDF)}"
        ))
    print(format_table(rows))
    return 0


COMMANDS = {
    'fees': cmd_fees,
    'balance': cmd_balance,
    'transfer': cmd_transfer,
    'withdraw': cmd_withdraw,
    'withdrawals': cmd_withdrawals,
    'pack-stats': cmd_pack_stats,
}


async def confirm_and_submit(flow: PaymentFlow, args) -> int:
    """Show the confirmation breakdown, ask for approval and the password, submit"""
    confirmation = await flow.prepare()
    if confirmation.schedule.degraded:
        print("Warning: transaction fees could not be loaded, 0% applied")
    print(format_table(confirmation.rows()))

    if not args.yes:
        answer = input("Confirm? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            flow.cancel()
            print("Cancelled")
            return 1

    password = None
    if flow.password_required:
        password = os.getenv("SOLIFIN_PASSWORD") if args.yes else None
        if not password:
            password = getpass.getpass("Password: ")

    result = await flow.submit(password)
    print(result.get("message") or "Done")
    return 0


async def run_command(args) -> int:
    async with APIClient.from_config(config) as api:
        return await COMMANDS[args.command](api, args)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    configure_logging()
    try:
        config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.command == 'withdraw' and get_payment_method(args.method) is None:
        parser.error(f"unknown payment method: {args.method}")

    try:
        return asyncio.run(run_command(args))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
