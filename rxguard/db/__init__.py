"""SQLAlchemy persistence for RxGuard actors."""
