"""Quiz service: question pools, quiz sessions and the results ledger."""
