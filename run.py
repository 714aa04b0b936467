from foursigma import create_app, db
from foursigma.models import (
    DailyQuestion,
    GameSession,
    Question,
    SessionAnswer,
    User,
    UserResponse,
)

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Question": Question,
        "DailyQuestion": DailyQuestion,
        "GameSession": GameSession,
        "SessionAnswer": SessionAnswer,
        "UserResponse": UserResponse,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
