"""
TACo Child Application (tacochild)

Staking-authorization registry for a cross-chain application:
- Authorization state mirrored from a root-chain application
- Operator binding and coordinator confirmation
- Paginated enumeration of active staking providers
"""
