from waybar_timer.cli import app

app(prog_name="waybar-timer")
