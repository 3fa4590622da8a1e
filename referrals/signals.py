from __future__ import annotations

from django.dispatch import Signal

# kwargs: reward (ReferralReward)
referral_reward_awarded = Signal()
