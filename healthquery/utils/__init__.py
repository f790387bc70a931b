from .config import (
    Config,

    global_config
)

from .log import (
    init_log_console,
    init_log_file,

    init_log
)

from .http import (
    get_client_ip,

    json_response
)

from .db import (
    init_db,
    close_db,

    execute_query
)

from .req_ctx import (
    get_req_ctx,
    set_req_ctx,

    new_trace_id
)
