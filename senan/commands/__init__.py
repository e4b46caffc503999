# Chat commands. base.py holds parsing and reply helpers, router.py the
# command table; each other module implements one command family.
