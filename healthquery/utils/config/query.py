#-----------------------------------------------------------------------------

class QueryConfig:
    def __init__(
        self,
        timezone            : str = "",
        week_start          : str = "",
        default_page_size   : int = 0,
        max_page_size       : int = 0,
        timeout             : float = 0,
        source_table        : str = "",
        cursor_secret_key   : str = ""
    ):
        self.timezone           = timezone.strip() if timezone else "UTC"
        self.week_start         = week_start.strip().lower() if week_start else "monday"
        self.default_page_size  = default_page_size if default_page_size > 0 else 1000
        self.max_page_size      = max_page_size if max_page_size > 0 else 5000
        self.timeout            = timeout if timeout > 0 else None
        self.source_table       = source_table.strip() if source_table else "health_records"
        self.cursor_secret_key  = cursor_secret_key

        if self.default_page_size > self.max_page_size:
            self.default_page_size = self.max_page_size


    def print(self):
        print(f"query           : tz={self.timezone} week_start={self.week_start} "
              f"page={self.default_page_size}/{self.max_page_size} table={self.source_table}")
        print(f"                : timeout={self.timeout if self.timeout else 'none'} "
              f"cursor={'encrypted' if self.cursor_secret_key else 'plain'}")

#-----------------------------------------------------------------------------
