# Services package init
"""
SpecDate Backend — Services Layer
===================================

What:  Business logic between the routes (HTTP) and the models (persistence).
How:   Module-level singletons (`spec_service`, `round_service`, ...) take the
       request's AsyncSession as their first argument and never commit;
       get_db_session commits once per request.

Service Inventory:
    - AuthService, ProfileService, AccountService: accounts and profiles
    - SpecService, RoundService: specs, applications, rounds, eliminations
    - SparkService: blue/red spark balances and the transaction ledger
    - MediaService, FileService: media rows, upload validation and storage
    - NotificationService: in-app rows fanned out to Pusher and Expo
    - ExpoPushService, PusherBroadcastService, OneSignalOtpSender: outbound
      gateways behind a circuit breaker and tenacity retries
    - requirements, presenters, pagination: pure helpers
"""
