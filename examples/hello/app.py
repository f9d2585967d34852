"""Hello World: the simplest perch bot.

Demonstrates commands, text patterns with parameters, callback data
built from route names, Response chaining, and a fallback.

Run:
    perch routes app:app
"""

from perch import App, Request, Response

app = App()


@app.command("start")
def start(request: Request):
    return f"Hello, {request.update.user.first_name}!"


@app.text("hi {name?}")
def greet(name: str | None = None):
    return f"Hi, {name or 'stranger'}!"


@app.command("menu")
def menu():
    data = app.payload_for("menu.pick", item="tea")
    return Response("Pick one").with_params(reply_markup={"inline_keyboard": [[{"text": "Tea", "callback_data": data}]]})


@app.callback_query("menu pick {item}", name="menu.pick")
def pick(item: str):
    return {"text": f"You picked {item}", "method": "answerCallbackQuery"}


@app.fallback()
def unknown(payload: str | None = None):
    return f"Sorry, I don't understand {payload!r}"
