"""Personal pull-request review SLO tracking on a business-time calendar."""
