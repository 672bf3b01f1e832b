"""NIV onboarding backend: eligibility rules, onboarding lifecycle and PointClickCare integration."""
