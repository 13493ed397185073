class RequestIdFilter:
    """
    Fill request context fields on every log record.
    Missing values become '-' so format strings never fail.
    """

    FIELDS = ("request_id", "user", "ip", "method", "path", "status", "duration_ms")

    def filter(self, record):
        for name in self.FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "-")
        if not hasattr(record, "status_color"):
            record.status_color = ""
        # 2xx green, 4xx yellow, 5xx red
        try:
            st = int(record.status)
            if 200 <= st < 300:
                record.status_color = "\x1b[32m"
            elif 400 <= st < 500:
                record.status_color = "\x1b[33m"
            elif 500 <= st < 600:
                record.status_color = "\x1b[31m"
        except (TypeError, ValueError):
            pass
        return True
