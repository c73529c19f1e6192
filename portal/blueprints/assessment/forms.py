from flask_wtf import FlaskForm
from wtforms import RadioField, StringField, TextAreaField, SubmitField
from wtforms.validators import DataRequired, Length, Optional


class BeginForm(FlaskForm):
    position_type = RadioField(
        "Which position are you applying for?",
        choices=[("voice", "Voice"), ("non-voice", "Non-voice")],
        validators=[DataRequired(message="Please select a position type to continue")],
    )
    submit = SubmitField("Begin Assessment")


class TextResponseForm(FlaskForm):
    response_text = TextAreaField("Your response", validators=[DataRequired(message="Please enter your response before submitting.")])
    submit = SubmitField("Submit Response")


class ContactForm(FlaskForm):
    full_name = StringField("Full name", validators=[DataRequired(), Length(max=200)])
    phone_number = StringField("Phone number", validators=[DataRequired(), Length(max=40)])
    country = StringField("Country", validators=[DataRequired(), Length(max=120)])
    referred_by = StringField("Referred by", validators=[Optional(), Length(max=200)])
    submit = SubmitField("Submit")
