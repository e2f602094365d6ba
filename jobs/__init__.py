"""Background jobs: dramatiq broker and payout actors."""
