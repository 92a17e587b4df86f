"""HTTP API for HireBuddy referrals."""
