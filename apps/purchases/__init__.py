"""
Purchases App - Token Purchases and Contributions

Records prepaid electricity token purchases for a shared meter and the
member contributions that pay for the electricity consumed between them.

Key Features:
- Sequential-contribution gate (oldest purchase first)
- Derived tokens consumed from the meter sequence
- Household and per-member balance
- Optional receipt details per purchase
"""
