"""Demo fixture data seeded into a fresh in-memory database."""

from __future__ import annotations

from datetime import datetime, timedelta
import hashlib
import secrets
from typing import Any

import bcrypt

from quarry.store.values import generate_id, utcnow


DEMO_EMAIL = "admin@cryptomining.com"
DEMO_PASSWORD = "admin123"
_BCRYPT_ROUNDS = 10

_TICKET_PRICE = 10
_PAYOUT_PERCENTAGE = 90
_CYCLE_HOURS = 72


def hash_password(password: str, *, rounds: int = _BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def demo_credentials() -> dict[str, str]:
    return {"email": DEMO_EMAIL, "password": DEMO_PASSWORD}


_USER_PROFILES: list[dict[str, Any]] = [
    {
        "email": DEMO_EMAIL,
        "phone": "+15551234567",
        "name": "Admin User",
        "role": "admin",
        "referralCode": "ADMIN001",
        "depositTotal": 1200,
        "withdrawTotal": 300,
        "roiEarnedTotal": 450,
        "level": 4,
        "directActiveCount": 0,
        "totalActiveDirects": 12,
    },
    {
        "email": "alice@example.com",
        "phone": "+15550000001",
        "name": "Alice Miner",
        "role": "user",
        "referralCode": "ALICE01",
        "depositTotal": 600,
        "withdrawTotal": 100,
        "roiEarnedTotal": 220,
        "level": 2,
        "directActiveCount": 4,
        "totalActiveDirects": 9,
    },
    {
        "email": "bob@example.com",
        "phone": "+15550000002",
        "name": "Bob Staker",
        "role": "user",
        "referralCode": "BOB001",
        "depositTotal": 350,
        "withdrawTotal": 50,
        "roiEarnedTotal": 120,
        "level": 1,
        "directActiveCount": 2,
        "totalActiveDirects": 5,
    },
    {
        "email": "carol@example.com",
        "phone": "+15550000003",
        "name": "Carol Trader",
        "role": "user",
        "referralCode": "CAROL1",
        "depositTotal": 420,
        "withdrawTotal": 0,
        "roiEarnedTotal": 140,
        "level": 1,
        "directActiveCount": 1,
        "totalActiveDirects": 5,
    },
]

# level -> (directPct, teamDailyPct, teamRewardPct, activeMin, override kind/pct, teams)
_COMMISSION_LEVELS: list[tuple[int, int, int, int, int, list[tuple[str, int]], str]] = [
    (1, 7, 1, 0, 5, [("daily_override", 1)], "A"),
    (2, 8, 1, 0, 10, [("daily_override", 1)], "ABC"),
    (3, 8, 8, 2, 15, [("team_commission", 8), ("team_reward", 2)], "ABCD"),
    (4, 9, 0, 2, 23, [("team_reward", 2)], "ABCD"),
    (5, 10, 0, 2, 30, [("team_reward", 2)], "ABCD"),
]
_MONTHLY_BONUSES = {
    4: ([{"threshold": 2200, "amount": 200, "type": "bonus", "label": "Monthly Bonus"}], {"directSale": 2200, "bonus": 200}),
    5: (
        [{"threshold": 4500, "amount": 400, "type": "salary", "label": "Monthly Salary"}],
        {"directSale": 4500, "bonus": 0, "salary": 400},
    ),
}


def _users(identity: str, now: datetime) -> list[dict[str, Any]]:
    password_hash = hash_password(DEMO_PASSWORD)
    ids = [generate_id() for _ in _USER_PROFILES]
    users: list[dict[str, Any]] = []
    for index, profile in enumerate(_USER_PROFILES):
        is_admin = index == 0
        users.append(
            {
                identity: ids[index],
                **profile,
                "passwordHash": password_hash,
                "referredBy": None if is_admin else ids[0],
                "isActive": True,
                "emailVerified": index != 2,
                "phoneVerified": index != 1,
                "lastLevelUpAt": now,
                "qualified": True,
                "qualifiedAt": now,
                "groups": {
                    "A": [ids[1]] if is_admin else [],
                    "B": [ids[2]] if is_admin else [],
                    "C": [ids[3]] if is_admin else [],
                    "D": [],
                },
                "createdAt": now,
                "updatedAt": now,
            }
        )
    return users


def _balances(identity: str, users: list[dict[str, Any]], now: datetime) -> list[dict[str, Any]]:
    balances = []
    for user in users:
        deposit = user["depositTotal"]
        balances.append(
            {
                identity: generate_id(),
                "userId": user[identity],
                "current": max(deposit - user["withdrawTotal"] + user["roiEarnedTotal"] - 200, 0),
                "totalBalance": deposit,
                "totalEarning": user["roiEarnedTotal"],
                "lockedCapital": deposit * 0.4,
                "lockedCapitalLots": [
                    {
                        "amount": deposit * 0.4,
                        "lockStart": now,
                        "lockEnd": now + timedelta(days=30),
                        "released": False,
                    }
                ],
                "staked": deposit * 0.2,
                "pendingWithdraw": 50,
                "teamRewardsAvailable": 75,
                "teamRewardsClaimed": 120,
                "teamRewardsLastClaimedAt": now,
                "createdAt": now,
                "updatedAt": now,
            }
        )
    return balances


def _mining_sessions(identity: str, users: list[dict[str, Any]], now: datetime) -> list[dict[str, Any]]:
    return [
        {
            identity: generate_id(),
            "userId": user[identity],
            "nextEligibleAt": now + timedelta(hours=0 if index == 0 else 1),
            "lastClickAt": now - timedelta(hours=2),
            "earnedInCycle": 12 * (index + 1),
            "totalClicks": 45 * (index + 1),
            "createdAt": now,
            "updatedAt": now,
        }
        for index, user in enumerate(users)
    ]


def _settings(identity: str, now: datetime) -> list[dict[str, Any]]:
    return [
        {
            identity: generate_id(),
            "mining": {"minPct": 1.5, "maxPct": 1.5, "roiCap": 3},
            "gating": {
                "minDeposit": 30,
                "minWithdraw": 30,
                "joinNeedsReferral": True,
                "activeMinDeposit": 80,
                "capitalLockDays": 30,
            },
            "joiningBonus": {"threshold": 100, "pct": 5},
            "commission": {"baseDirectPct": 7, "startAtDeposit": 50, "highTierPct": 5, "highTierStartAt": 100},
            "giftBox": {
                "ticketPrice": _TICKET_PRICE,
                "payoutPercentage": _PAYOUT_PERCENTAGE,
                "cycleHours": _CYCLE_HOURS,
                "winnersCount": 1,
                "autoDrawEnabled": True,
                "refundPercentage": 0,
                "depositAddress": "TRhSCE8igyVmMuuRqukZEQDkn3MuEAdvfw",
            },
            "createdAt": now,
            "updatedAt": now,
        }
    ]


def _commission_rules(identity: str, now: datetime) -> list[dict[str, Any]]:
    rules = []
    for level, direct_pct, team_daily_pct, team_reward_pct, active_min, kinds, teams in _COMMISSION_LEVELS:
        overrides = [
            {
                "team": team,
                "depth": depth,
                "pct": pct,
                "kind": kind,
                "payout": "reward" if kind == "team_reward" else "commission",
                "appliesTo": "profit",
            }
            for kind, pct in kinds
            for depth, team in enumerate(teams, start=1)
        ]
        bonuses, targets = _MONTHLY_BONUSES.get(level, ([], {"directSale": 0, "bonus": 0}))
        rules.append(
            {
                identity: generate_id(),
                "level": level,
                "directPct": direct_pct,
                "teamDailyPct": team_daily_pct,
                "teamRewardPct": team_reward_pct,
                "activeMin": active_min,
                "teamOverrides": overrides,
                "monthlyBonuses": [dict(item) for item in bonuses],
                "monthlyTargets": dict(targets),
                "createdAt": now,
                "updatedAt": now,
            }
        )
    return rules


def _hashed_user_id(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _gift_box(identity: str, users: list[dict[str, Any]], now: datetime) -> dict[str, list[dict[str, Any]]]:
    cycle_length = timedelta(hours=_CYCLE_HOURS)
    current_id, previous_id = generate_id(), generate_id()
    current_start = now - timedelta(hours=12)
    previous_start = current_start - cycle_length
    previous_end = current_start

    participants: list[dict[str, Any]] = []
    entries: list[dict[str, Any]] = []

    def _enter(user: dict[str, Any], cycle_id: str, joined_at: datetime, updated_at: datetime) -> None:
        participants.append(
            {
                identity: generate_id(),
                "userId": user[identity],
                "cycleId": cycle_id,
                "hashedUserId": _hashed_user_id(str(user[identity])),
                "status": "active",
                "depositId": None,
                "createdAt": joined_at,
                "updatedAt": updated_at,
            }
        )
        entries.append(
            {
                identity: generate_id(),
                "userId": user[identity],
                "type": "giftBoxEntry",
                "amount": _TICKET_PRICE,
                "status": "approved",
                "meta": {"cycleId": cycle_id},
                "createdAt": joined_at,
                "updatedAt": joined_at,
            }
        )

    previous_players = users[:5]
    for index, user in enumerate(previous_players):
        _enter(user, previous_id, previous_start + timedelta(hours=index), previous_end)
    current_players = users[:3]
    for index, user in enumerate(current_players):
        joined_at = current_start + timedelta(minutes=45 * index)
        _enter(user, current_id, joined_at, joined_at)

    winner = previous_players[0] if previous_players else None
    payouts: list[dict[str, Any]] = []
    payout_tx_id = None
    if winner is not None:
        payout_tx_id = generate_id()
        payouts.append(
            {
                identity: payout_tx_id,
                "userId": winner[identity],
                "type": "giftBoxPayout",
                "amount": round(_TICKET_PRICE * len(previous_players) * _PAYOUT_PERCENTAGE / 100),
                "status": "approved",
                "meta": {"cycleId": previous_id, "note": "Gift box demo payout"},
                "createdAt": previous_end,
                "updatedAt": previous_end,
            }
        )

    cycles = [
        {
            identity: previous_id,
            "status": "completed",
            "startTime": previous_start,
            "endTime": previous_end,
            "ticketPrice": _TICKET_PRICE,
            "payoutPercentage": _PAYOUT_PERCENTAGE,
            "totalParticipants": len(previous_players),
            "winnerUserId": winner[identity] if winner else None,
            "payoutTxId": payout_tx_id,
            "winnerSnapshot": (
                {
                    "userId": winner[identity],
                    "name": winner["name"],
                    "referralCode": winner["referralCode"],
                    "email": winner["email"],
                    "creditedAt": previous_end,
                }
                if winner
                else None
            ),
            "fairnessProof": {
                "serverSeed": secrets.token_hex(32),
                "clientSeed": secrets.token_hex(16),
                "nonce": len(previous_players),
                "hash": secrets.token_hex(32),
                "winnerIndex": 0,
            },
            "createdAt": previous_start,
            "updatedAt": previous_end,
        },
        {
            identity: current_id,
            "status": "open",
            "startTime": current_start,
            "endTime": current_start + cycle_length,
            "ticketPrice": _TICKET_PRICE,
            "payoutPercentage": _PAYOUT_PERCENTAGE,
            "totalParticipants": len(current_players),
            "winnerUserId": None,
            "payoutTxId": None,
            "winnerSnapshot": None,
            "fairnessProof": None,
            "createdAt": current_start,
            "updatedAt": now,
        },
    ]

    rewards = []
    if current_players:
        rewards.append(
            {
                identity: generate_id(),
                "userId": current_players[0][identity],
                "type": "giftBoxReward",
                "amount": 30,
                "status": "approved",
                "meta": {"cycleId": current_id, "note": "Demo reward for approved deposit"},
                "createdAt": current_start,
                "updatedAt": current_start,
            }
        )
    return {
        "giftBoxCycles": cycles,
        "giftBoxParticipants": participants,
        "transactions": entries + payouts + rewards,
    }


def _transactions(identity: str, users: list[dict[str, Any]], now: datetime) -> list[dict[str, Any]]:
    transactions = []
    for index, user in enumerate(users):
        base_amount = 100 + index * 50
        rows = [
            ("deposit", base_amount, "approved", {"method": "USDT", "reference": f"DEP{index + 1}"}, 5),
            ("earn", base_amount * 0.12, "approved", {"source": "mining"}, 3),
            ("commission", base_amount * 0.05, "approved", {"source": "referral", "fromUser": "ALICE01"}, 2),
            (
                "withdraw",
                base_amount * 0.3,
                "pending" if index == 0 else "approved",
                {"method": "USDT", "address": "TVxDemoAddress123"},
                1,
            ),
        ]
        for kind, amount, status, meta, days_ago in rows:
            transactions.append(
                {
                    identity: generate_id(),
                    "userId": user[identity],
                    "type": kind,
                    "amount": amount,
                    "status": status,
                    "meta": meta,
                    "createdAt": now - timedelta(days=days_ago),
                    "updatedAt": now,
                }
            )
    return transactions


def _notifications(identity: str, users: list[dict[str, Any]], now: datetime) -> list[dict[str, Any]]:
    notifications = []
    for index, user in enumerate(users):
        notifications.append(
            {
                identity: generate_id(),
                "userId": user[identity],
                "title": "Welcome to Crypto Mine",
                "body": "Your account is ready to start mining.",
                "read": index == 0,
                "createdAt": now,
                "updatedAt": now,
            }
        )
        notifications.append(
            {
                identity: generate_id(),
                "userId": user[identity],
                "title": "Deposit Approved",
                "body": "Your recent deposit has been approved and added to your balance.",
                "read": False,
                "createdAt": now - timedelta(hours=12),
                "updatedAt": now,
            }
        )
    return notifications


def _wallet_addresses(identity: str, users: list[dict[str, Any]], now: datetime) -> list[dict[str, Any]]:
    return [
        {
            identity: generate_id(),
            "userId": user[identity],
            "label": "Primary Wallet" if index == 0 else f"Wallet {index + 1}",
            "address": f"TVxDemoAddress{1000 + index}",
            "network": "TRC20",
            "createdAt": now,
            "updatedAt": now,
        }
        for index, user in enumerate(users)
    ]


def build_fixtures(*, identity_field: str = "_id", now: datetime | None = None) -> dict[str, list[dict[str, Any]]]:
    now = now or utcnow()
    users = _users(identity_field, now)
    gift_box = _gift_box(identity_field, users, now)
    return {
        "users": users,
        "balances": _balances(identity_field, users, now),
        "miningSessions": _mining_sessions(identity_field, users, now),
        "settings": _settings(identity_field, now),
        "commissionRules": _commission_rules(identity_field, now),
        "giftBoxCycles": gift_box["giftBoxCycles"],
        "giftBoxParticipants": gift_box["giftBoxParticipants"],
        "transactions": _transactions(identity_field, users, now) + gift_box["transactions"],
        "notifications": _notifications(identity_field, users, now),
        "walletAddresses": _wallet_addresses(identity_field, users, now),
        "levelHistories": [],
        "bonusPayouts": [],
    }
