#!/usr/bin/env python3
import argparse
import getpass
from typing import Optional

import anyio
import httpx

from app.client import ApiError, ChatApiClient, ChatPage, format_timestamp

COMMANDS_HELP = "/new  /clear  /history  /open <n>  /rename <n> <title>  /delete <n>  /quit"


def _session_at(page: ChatPage, raw: str) -> Optional[str]:
    try:
        index = int(raw) - 1
    except ValueError:
        return None
    if 0 <= index < len(page.history.sessions):
        return page.history.sessions[index].id
    return None


def _print_history(page: ChatPage) -> None:
    if not page.history.sessions:
        print("(no saved chats)")
    for position, session in enumerate(page.history.sessions, start=1):
        marker = '*' if session.id == page.history.current_session_id else ' '
        print(f"{marker}{position:>3}. {session.title}  [{format_timestamp(session.updated_at)}]")


def _print_transcript(page: ChatPage) -> None:
    for message in page.conversation.messages:
        print(f"{message.role.value}> {message.content}")


async def _handle_command(page: ChatPage, line: str) -> bool:
    command, _, rest = line.partition(' ')
    if command == '/quit':
        return False
    if command == '/new':
        page.history.new_chat()
        _print_transcript(page)
    elif command == '/clear':
        page.conversation.clear()
        _print_transcript(page)
    elif command == '/history':
        await page.history.refresh()
        _print_history(page)
    elif command == '/open':
        session_id = _session_at(page, rest.strip())
        if session_id:
            page.history.select(session_id)
            _print_transcript(page)
    elif command == '/rename':
        position, _, title = rest.partition(' ')
        session_id = _session_at(page, position)
        if session_id and await page.history.rename(session_id, title):
            _print_history(page)
    elif command == '/delete':
        session_id = _session_at(page, rest.strip())
        if session_id:
            answer = input("Are you sure you want to delete this chat? [y/N] ")
            await page.history.delete(session_id, confirm=lambda: answer.lower().startswith('y'))
            _print_history(page)
    else:
        print(COMMANDS_HELP)
    if page.history.error:
        print(f"error: {page.history.error}")
    return True


async def _run(args: argparse.Namespace) -> None:
    async with httpx.AsyncClient(base_url=args.base_url, timeout=None) as http:
        page = ChatPage(ChatApiClient(http))
        await page.start()
        if args.email:
            password = getpass.getpass('Password: ')
            try:
                user = await page.sign_in(args.email, password)
            except ApiError as exc:
                print(f"Sign-in failed: {exc.message}")
                return
            print(f"Signed in as {user.display_name or user.email}")
        _print_transcript(page)
        print(COMMANDS_HELP)
        while True:
            try:
                line = input('you> ')
            except EOFError:
                break
            if line.startswith('/'):
                if not await _handle_command(page, line.strip()):
                    break
                continue
            reply = await page.send(line)
            if reply:
                print(f"assistant> {reply.content}")
            if page.conversation.error:
                print(f"error: {page.conversation.error}")
        if page.auth.user:
            await page.sign_out()


def main() -> None:
    parser = argparse.ArgumentParser(description='Terminal front end for the chat API')
    parser.add_argument('--base-url', default='http://127.0.0.1:8000')
    parser.add_argument('--email', help='sign in to save and browse chat history')
    args = parser.parse_args()
    anyio.run(_run, args)


if __name__ == '__main__':
    main()
