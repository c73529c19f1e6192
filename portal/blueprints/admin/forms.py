from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField, SelectField, BooleanField, IntegerField, HiddenField, SubmitField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, AnyOf


class ScenarioForm(FlaskForm):
    title = StringField("Title", validators=[DataRequired(), Length(max=200)])
    description = TextAreaField("Description", validators=[DataRequired()])
    response_type = SelectField("Response type", choices=[("audio", "Audio"), ("text", "Text")])
    active = BooleanField("Active", default=True)
    submit = SubmitField("Save")


class RatingForm(FlaskForm):
    response_id = HiddenField(validators=[DataRequired()])
    kind = HiddenField(validators=[DataRequired(), AnyOf(["audio", "text"])])
    rating = IntegerField("Rating", validators=[DataRequired(), NumberRange(min=1, max=10)])
    feedback = TextAreaField("Feedback", validators=[Optional(), Length(max=5000)])
    submit = SubmitField("Save rating")
