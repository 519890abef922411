# tlschat

A small chat system. Its client and server exchange length-prefixed messages
over TLS. Users register and log in against plain-text tables. A logged-in
user can pick another user who is online. They can then send that user a
text message, a file, or a WAV audio stream.

The package provides an interactive client command. For the server side it
provides a set of building blocks.

## Installation

```
pip install .
```

Only the standard library is needed.

## Running the client

```
tlschat <hostname or IP> <port>
```

The client connects over TCP to the first address that accepts. It then starts
TLS and checks the server's certificate against `ca.crt` in the current
directory. Host names are not checked. The menus then run in this order:

1. Main menu: `1` register, `2` log in, `3` exit. Registering and logging in
   both ask for a name and a password.
2. After a successful login: `1` chat with someone, `2` log out, `3` exit.
3. Choosing a user: type the name of a user who is online.
4. Sending: `0` quit back to the previous menu, `1` text message, `2` file,
   `3` audio (`.wav` files only).

Incoming content is announced while you work, and handled as follows:

- A text message is printed.
- A file is written to the current directory under the name the sender gave it.
- An audio stream is written as 16-bit PCM to a `.wav` file of that name in the
  current directory.

Press Enter afterwards to return to the menu you were in.

The same loop can be driven from code with `tlschat.client.ClientSession`. Its
arguments are:

- a connected socket;
- an optional text stream for user input;
- an optional `sink_factory(name)` that returns an audio sink;
- an optional starting state.

`run()` returns the final `ClientState`.

## Wire format

Every message is a 4-byte big-endian signed length followed by
`<identifier>:<payload>`. The identifiers are `normal`, `prompt`, `message`,
`fileid`, `filedata`, `end_of_file`, `audio`, `audio_data` and `audio_end`.

The helpers are in `tlschat.protocol`:

```python
from tlschat.protocol import encode_frame, send_message, receive_message

frame = encode_frame("normal", "hello")
send_message(conn, "normal", "hello")
message = receive_message(conn)   # Message(identifier, payload); message.text() decodes it
```

- `receive_message` raises `ConnectionClosedError` when the peer closes the
  connection partway through a frame. A body without a colon comes back with
  an empty identifier.
- `send_file` / `receive_file` send a file as `filedata` chunks followed by
  `end_of_file`, and receive it the same way.
- `send_audio` reads a `.wav` file and sends 16-bit PCM. Any other file raises
  `ValueError`.
- `receive_audio(conn, sink)` feeds the stream to an object that has
  `configure(sample_rate, channels)`, `queue(data)` and `drain()`.
- `server_ssl_context(cert_file, key_file)` and `client_ssl_context(ca_file)`
  build the TLS contexts.
- `format_message` / `print_message` colour text by origin: `1` for the
  server, `2` for a client.

## Client states

`tlschat.client_states` defines `ClientState`:

- `EXIT`
- `MAIN_MENU`
- `REGISTER`
- `LOGIN`
- `SERVICE`
- `CHOOSE_TARGET`
- `CHATTING`
- `NOTIFIED`

The same module has the menu functions. Each one reads from a stream and
sends to a connection:

- `client_main_menu`
- `client_auth_process`
- `client_service_menu`
- `chat_some`
- `chat_and_send_data`

It also has three helpers:

- `msg_status_change(msg, status)` maps a server prompt to the next state.
- `prompt_text(status)` returns the prompt text for a state.
- `print_prompt(status)` prints that prompt.

## Server building blocks

`tlschat.server_handlers` contains the following:

- `ServerRegistry` tracks each connection's state and maps user names to live
  connections. It uses these methods:
  - `update_status`
  - `get_status`
  - `remove_client`
  - `register_user`
  - `user_connection`
  - `remove_user`
  - `is_online`
- Step handlers each handle one step of a session and return the client's next
  `ClientState`:
  - `handle_client_menu`
  - `handle_client_register`
  - `handle_client_login`
  - `handle_client_serve`
  - `handle_send_data`
  - `handle_chat_serve`, which also returns the chosen target, or `None` when
    that user is not online.
- Relay handlers pass content from the sender to the receiver's connection
  and mark the receiver as `NOTIFIED`:
  - `handle_text_message`
  - `handle_send_file`
  - `handle_send_audio`
- `parse_file_name` takes the file name out of an `I will send <path>`
  message.

Socket setup is in `tlschat.network`:

- `create_socket`
- `bind_socket`
- `listen_on_socket`
- `accept_connection`
- `connect_to_server`

When one of these fails it raises `NetworkError`. For the functions that take
a socket, that socket has already been closed by then.

## User tables and logs

User tables hold one `name password` pair per line, in plain text. The
defaults are:

- registered users: `./data/users_table.txt`
- logins: `./data/login_table.txt`

`tlschat.auth` works with these tables:

- `is_name_available`
- `verify_password`, which returns a `VerifyResult`: `OK`, `MISMATCH` or
  `NOT_FOUND`
- `append_user`
- `remove_user`, which returns whether any line matched
- `read_table`
- `print_registered`
- `print_logged_in`

`tlschat.logs.write_log` and `tlschat.logs.write_error_log` append
timestamped `INFO` and `ERROR` lines. The default log file is
`./data/Log.log`.

## What is not included

- There is no server command. The package has no loop that accepts
  connections and drives each session through the handlers. To run a server,
  you put the pieces above together yourself.
- Received audio is saved to a `.wav` file, not played.
- Passwords are stored and compared in plain text.
- The `./data` directory is not created for you.

## Tests

```
pip install .[test]
pytest
```